"""
Health check endpoint, polled by the desktop shell while the server boots.
"""

from starlette.requests import Request
from starlette.responses import JSONResponse


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})
