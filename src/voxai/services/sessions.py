"""
Session Resolver.

Turns request credentials into an identity and the identity into a
ledger Account. Two kinds of credentials are understood:

    - a signed session token (HS256 JWT carrying {"email", "exp"}),
      issued after a successful identity provider login
    - an unsigned preview marker (the raw identity string), used when no
      identity provider is configured

When both are present the preview marker wins, provided preview markers
are allowed. A bad signature, an expired token or a missing claim is
Unauthenticated; the resolver never falls back from a broken token to
another path.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from voxai.core.logging import debug, get_logger, warn
from voxai.services.errors import Unauthenticated
from voxai.services.ledger import Account, CreditLedger

_LOG = get_logger("voxai.sessions")


@dataclass(frozen=True)
class Credentials:
    """
    Credentials presented by a caller.

    Attributes:
        session_token: Signed JWT from the session cookie.
        preview: Raw identity from the preview cookie.
    """
    session_token: Optional[str] = None
    preview: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.session_token and not self.preview


class SessionResolver:
    """
    Resolve credentials to identities and accounts.

    Args:
        ledger: Ledger that accounts are created in.
        secret: HMAC secret for session tokens.
        algorithm: JWT algorithm (HS256).
        session_days: Lifetime of issued tokens.
        allow_preview: Whether unsigned preview markers are honored.
    """

    def __init__(
        self,
        ledger: CreditLedger,
        secret: str,
        algorithm: str = "HS256",
        session_days: int = 7,
        allow_preview: bool = True,
    ):
        self._ledger = ledger
        self._secret = secret
        self._algorithm = algorithm
        self._session_days = session_days
        self.allow_preview = allow_preview

    @property
    def ledger(self) -> CreditLedger:
        return self._ledger

    def issue_session(self, identity: str, now: Optional[datetime] = None) -> str:
        """Sign a session token for identity, valid for session_days."""
        now = now or datetime.now(timezone.utc)
        payload = {
            "email": identity,
            "iat": now,
            "exp": now + timedelta(days=self._session_days),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def resolve_identity(self, credentials: Credentials) -> str:
        """
        Return the identity the credentials belong to.

        Raises:
            Unauthenticated: No credentials, or the token is invalid,
                expired or lacks an email claim.
        """
        if self.allow_preview and credentials.preview:
            debug(_LOG, "session_preview", identity=credentials.preview)
            return credentials.preview

        if not credentials.session_token:
            raise Unauthenticated()

        try:
            claims = jwt.decode(
                credentials.session_token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            warn(_LOG, "session_expired")
            raise Unauthenticated("Invalid token", {"reason": "expired"})
        except jwt.InvalidTokenError as e:
            warn(_LOG, "session_invalid", error=type(e).__name__)
            raise Unauthenticated("Invalid token", {"reason": "invalid"})

        identity = claims.get("email")
        if not identity or not isinstance(identity, str):
            warn(_LOG, "session_missing_claim")
            raise Unauthenticated("Invalid token", {"reason": "missing_claim"})

        return identity

    def resolve_account(self, credentials: Credentials) -> Account:
        """Resolve credentials to an Account, creating it on first sight."""
        identity = self.resolve_identity(credentials)
        return self._ledger.resolve(identity)
