"""
Authentication routes.

Endpoints:
    GET      /api/auth/url     - Where the login popup should go
    GET/POST /auth/callback    - Google redirect target; sets the session cookie
    GET      /auth/mock-login  - Preview login (no identity provider configured)
    POST     /api/auth/logout  - Clear both session cookies

Login Flow:
    1. The client opens the URL from /api/auth/url in a popup.
    2. Google redirects the popup to /auth/callback?code=... (or
       form-posts the code there).
    3. The code is exchanged, the account is created if new, and a
       signed session cookie is set (httpOnly, Secure, SameSite=None).
    4. The popup posts {type: "OAUTH_AUTH_SUCCESS"} to its opener and
       closes itself.

Preview login sets an unsigned mock_session cookie holding the email
and is only served while auth.allow_preview is on.
"""
from __future__ import annotations

import json
import uuid
from typing import Optional
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from voxai.api.dependencies import get_identity_provider, get_orchestrator
from voxai.core.logging import get_logger, info, set_request_id, warn
from voxai.services.errors import IdentityProviderError
from voxai.services.identity import GoogleIdentityProvider
from voxai.services.orchestrator import GenerationOrchestrator

router = APIRouter()

_LOG = get_logger("voxai.auth")

AUTH_FAILED_MESSAGE = "Authentication failed. Please check your Google Client ID and Secret."

_HANDSHAKE_PAGE = """<html><body><script>
  if (window.opener) {{
    window.opener.postMessage({{ type: 'OAUTH_AUTH_SUCCESS', email: {email} }}, '*');
    window.close();
  }} else {{
    window.location.href = '/';
  }}
</script></body></html>"""

_PREVIEW_LOGIN_FORM = """<html>
  <body style="font-family: sans-serif; display: flex; align-items: center; justify-content: center; height: 100vh;">
    <form method="get" action="/auth/mock-login" style="text-align: center; max-width: 400px; width: 100%;">
      <h2>Preview Mode Login</h2>
      <p>Enter your email to simulate Google Login.</p>
      <input type="email" name="email" placeholder="your@email.com" required style="width: 100%; padding: 0.75rem;" />
      <button type="submit" style="width: 100%; padding: 0.75rem; margin-top: 1rem;">Sign In</button>
    </form>
  </body>
</html>"""


def _handshake_page(email: str) -> str:
    # json.dumps gives a JS string literal; escape "<" so it can't close the script tag.
    return _HANDSHAKE_PAGE.format(email=json.dumps(email).replace("<", "\\u003c"))


def _redirect_uri(request: Request) -> str:
    return str(request.base_url).rstrip("/") + "/auth/callback"


async def _callback_code(request: Request, code: Optional[str]) -> str:
    """The authorization code from the query string, or from a form-posted body."""
    if code or request.method != "POST":
        return code or ""
    if not request.headers.get("content-type", "").startswith("application/x-www-form-urlencoded"):
        return ""
    form = parse_qs((await request.body()).decode("utf-8", errors="replace"))
    return (form.get("code") or [""])[0]


@router.get("/api/auth/url")
def auth_url(
    request: Request,
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
):
    return {"url": provider.authorization_url(_redirect_uri(request))}


@router.api_route("/auth/callback", methods=["GET", "POST"], response_class=HTMLResponse)
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    set_request_id(str(uuid.uuid4())[:12])
    try:
        claims = await provider.exchange_code(await _callback_code(request, code), _redirect_uri(request))
    except IdentityProviderError:
        return PlainTextResponse(AUTH_FAILED_MESSAGE, status_code=500)

    identity = claims["email"]
    orchestrator.ledger.resolve(identity)
    token = orchestrator.sessions.issue_session(identity)

    auth_cfg = orchestrator.config.auth
    response = HTMLResponse(_handshake_page(identity))
    response.set_cookie(
        auth_cfg.session_cookie,
        token,
        max_age=auth_cfg.session_days * 86400,
        path="/",
        secure=True,
        httponly=True,
        samesite="none",
    )
    return response


@router.get("/auth/mock-login", response_class=HTMLResponse)
def mock_login(
    email: Optional[str] = None,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    auth_cfg = orchestrator.config.auth
    if not auth_cfg.allow_preview:
        return JSONResponse(status_code=404, content={"ok": False, "error": "NOT_FOUND", "message": "Not found"})

    if not email or not email.strip():
        return HTMLResponse(_PREVIEW_LOGIN_FORM)

    email = email.strip()
    if len(email) > 320:
        warn(_LOG, "preview_login_rejected", reason="too_long")
        return PlainTextResponse("Email is too long", status_code=400)

    orchestrator.ledger.resolve(email)
    info(_LOG, "preview_login", identity=email)

    response = HTMLResponse(_handshake_page(email))
    response.set_cookie(
        auth_cfg.preview_cookie,
        email,
        max_age=auth_cfg.preview_max_age,
        path="/",
        secure=True,
        samesite="none",
    )
    return response


@router.post("/api/auth/logout")
def logout(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    auth_cfg = orchestrator.config.auth
    response = JSONResponse({"success": True})
    for name in (auth_cfg.session_cookie, auth_cfg.preview_cookie):
        response.delete_cookie(name, path="/", secure=True, httponly=name == auth_cfg.session_cookie,
                               samesite="none")
    return response
