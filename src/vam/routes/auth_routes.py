"""
Authentication API routes.

Login is two-phase: ``/auth/login`` may answer ``2fa_required`` and the UI
then posts the code to ``/auth/2fa`` on the same browser session.
"""

from starlette.requests import Request
from starlette.responses import JSONResponse

from vam.logger import get_logger
from vam.middleware import clear_session_cookie
from vam.routes.common import error_response, read_body
from vam.schemas import LoginRequest, TwoFactorRequest

logger = get_logger(__name__)


async def login(request: Request) -> JSONResponse:
    """
    Log in with username and password.

    Returns:
        ``{ok: true, state: "2fa_required", methods}`` or
        ``{ok: true, state: "logged_in", displayName}``; upstream rejections
        come back as ``{ok: false, status, body}`` with HTTP 401.
    """
    try:
        body = await read_body(request, LoginRequest)
        outcome = await request.app.state.upstream.login(
            request.state.sid, body.username, body.password
        )
        return JSONResponse(outcome.to_dict())
    except Exception as e:
        return error_response(e, "LOGIN")


async def verify_two_factor(request: Request) -> JSONResponse:
    """Complete a pending login with a TOTP or email code."""
    try:
        body = await read_body(request, TwoFactorRequest)
        outcome = await request.app.state.upstream.verify_two_factor(
            request.state.sid, body.method, body.code
        )
        return JSONResponse(outcome.to_dict())
    except Exception as e:
        return error_response(e, "2FA")


async def me(request: Request) -> JSONResponse:
    """Report whether the session is logged in, and as whom."""
    try:
        user = await request.app.state.upstream.get_current_user(request.state.sid)
    except Exception as e:
        response = error_response(e, "ME")
        if response.status_code == 401:
            return JSONResponse({"ok": False}, status_code=401)
        return response

    display_name = user.get("displayName", "") if isinstance(user, dict) else ""
    return JSONResponse({"ok": True, "displayName": display_name or ""})


async def logout(request: Request) -> JSONResponse:
    """Discard the session's upstream cookies and the browser's session id."""
    sid = request.state.sid
    request.app.state.upstream.forget_challenge(sid)
    request.app.state.sessions.delete(sid)

    response = JSONResponse({"ok": True})
    clear_session_cookie(response)
    return response
