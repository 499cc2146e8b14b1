"""
Google OAuth identity provider client.

Only the two edges of the authorization-code flow live here: building
the consent URL the popup is sent to, and exchanging the returned code
for an id_token whose email claim becomes the session identity.

The id_token arrives directly from Google's token endpoint over TLS, so
its claims are read without re-verifying the signature.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
import jwt

from voxai.core.logging import fail, get_logger, info
from voxai.services.errors import IdentityProviderError

_LOG = get_logger("voxai.identity")

PREVIEW_LOGIN_PATH = "/auth/mock-login"


class GoogleIdentityProvider:
    """
    Authorization-code client for Google accounts.

    Args:
        client_id: OAuth client id. Empty disables the provider.
        client_secret: OAuth client secret.
        auth_url: Consent screen endpoint.
        token_url: Code exchange endpoint.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth",
        token_url: str = "https://oauth2.googleapis.com/token",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self._client_secret = client_secret
        self._auth_url = auth_url
        self._token_url = token_url
        self._transport = transport
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id)

    def authorization_url(self, redirect_uri: str) -> str:
        """Consent URL, or the preview login page when no client id is set."""
        if not self.configured:
            return PREVIEW_LOGIN_PATH

        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "email profile",
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self._auth_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for the id_token claims.

        Returns:
            Claims dict; guaranteed to contain a non-empty "email".

        Raises:
            IdentityProviderError: On transport errors, non-2xx responses,
                or a response without a usable id_token.
        """
        if not code:
            raise IdentityProviderError("Authentication failed", {"reason": "missing_code"})

        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                resp = await client.post(self._token_url, data=data)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as e:
            fail(_LOG, "token_exchange_rejected", status=e.response.status_code)
            raise IdentityProviderError("Authentication failed", {"status": e.response.status_code})
        except (httpx.HTTPError, ValueError) as e:
            fail(_LOG, "token_exchange_failed", error=type(e).__name__)
            raise IdentityProviderError("Authentication failed", {"reason": type(e).__name__})

        id_token = payload.get("id_token") if isinstance(payload, dict) else None
        if not id_token:
            fail(_LOG, "token_exchange_no_id_token")
            raise IdentityProviderError("Authentication failed", {"reason": "missing_id_token"})

        try:
            claims = jwt.decode(id_token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            fail(_LOG, "id_token_malformed", error=type(e).__name__)
            raise IdentityProviderError("Authentication failed", {"reason": "malformed_id_token"})

        if not claims.get("email"):
            raise IdentityProviderError("Authentication failed", {"reason": "missing_email"})

        info(_LOG, "login", identity=claims["email"])
        return claims
