"""
Settings API routes.

The settings blob belongs to the UI; the server only stores it.
"""

import json

from starlette.requests import Request
from starlette.responses import JSONResponse

from vam.logger import get_logger

logger = get_logger(__name__)


async def get_settings(request: Request) -> JSONResponse:
    return JSONResponse(request.app.state.settings.get())


async def save_settings(request: Request) -> JSONResponse:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"ok": False, "error": "Request body must be JSON"}, status_code=400)

    if not isinstance(data, dict):
        return JSONResponse({"ok": False, "error": "Settings must be a JSON object"}, status_code=400)

    try:
        request.app.state.settings.set(data)
    except OSError as e:
        logger.error(f"Failed to save settings: {e}")
        return JSONResponse({"ok": False, "error": "SETTINGS_FAILED"}, status_code=500)
    return JSONResponse({"ok": True})
