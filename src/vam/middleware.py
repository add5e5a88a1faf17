"""
HTTP middleware for the VAM API.

Provides the browser-session cookie and request logging.
"""

import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vam.logger import get_logger, short_sid

logger = get_logger(__name__)

SESSION_COOKIE = "sid"
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 30  # 30 days
SESSION_PREFIXES = ["/auth", "/avatars", "/settings"]


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """
    Resolve the caller's session from the ``sid`` cookie.

    Only paths under ``session_prefixes`` take part; everything else (health
    checks, static UI assets) passes through untouched. Unknown or missing ids
    get a fresh session, and the new id is sent back as an HttpOnly cookie.
    The id is available to handlers as ``request.state.sid``.
    """

    def __init__(self, app, session_prefixes: list | None = None):
        super().__init__(app)
        self.session_prefixes = tuple(session_prefixes or SESSION_PREFIXES)

    def _needs_session(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.session_prefixes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS" or not self._needs_session(request.url.path):
            return await call_next(request)

        store = request.app.state.sessions
        incoming = request.cookies.get(SESSION_COOKIE)

        sid = incoming
        created = False
        if not sid or not store.has(sid):
            sid = store.create()
            created = True
            logger.debug(f"Issued session {short_sid(sid)} (incoming {short_sid(incoming)})")

        request.state.sid = sid
        response = await call_next(request)

        # A handler may have deleted the new session already (logout)
        if created and store.has(sid):
            response.set_cookie(
                SESSION_COOKIE,
                sid,
                max_age=SESSION_COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="lax",
            )
        return response


def clear_session_cookie(response: Response) -> None:
    """Tell the browser to drop its session id."""
    response.set_cookie(
        SESSION_COOKIE,
        "",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log all requests with timing information.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response."""
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request {request.method} {request.url.path} failed: {e}")
            raise

        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {duration*1000:.2f}ms"
        )
        response.headers["X-Response-Time"] = f"{duration*1000:.2f}ms"
        return response
