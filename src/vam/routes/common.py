"""
Helpers shared by route handlers: query parsing, body validation and
mapping proxy errors onto JSON responses.
"""

import json
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from vam.errors import SessionNotFound, TransportFailure, UpstreamRejected
from vam.logger import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_PAGE_SIZE = 100


class BadRequest(Exception):
    """Raised when a request body fails validation."""


def parse_int(value: Optional[str], default: int) -> int:
    """Parse a query value, falling back to the default on junk."""
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def page_params(request: Request, default_n: int) -> tuple[int, int]:
    """Read ``n`` and ``offset`` query params, clamped to 1..100 and >= 0."""
    n = parse_int(request.query_params.get("n"), default_n)
    offset = parse_int(request.query_params.get("offset"), 0)
    return min(max(n, 1), MAX_PAGE_SIZE), max(offset, 0)


async def read_body(request: Request, model: Type[ModelT]) -> ModelT:
    """
    Parse and validate a JSON body.

    Raises:
        BadRequest: If the body is not JSON or does not match the model.
    """
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Request body must be JSON")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise BadRequest(f"Invalid request: {e.errors()[0].get('msg', 'validation error')}")


def error_response(error: Exception, operation: str) -> JSONResponse:
    """
    Map an exception to the structured failure the UI expects.

    The UI tells "not logged in" apart from other failures by ``ok`` and the
    passthrough ``status``.
    """
    if isinstance(error, BadRequest):
        return JSONResponse({"ok": False, "error": str(error)}, status_code=400)
    if isinstance(error, SessionNotFound):
        return JSONResponse({"ok": False}, status_code=401)
    if isinstance(error, UpstreamRejected):
        return JSONResponse(error.to_dict(), status_code=401)
    if isinstance(error, TransportFailure):
        return JSONResponse({"ok": False, "error": "UPSTREAM_UNREACHABLE"}, status_code=502)

    logger.opt(exception=error).error(f"{operation} failed unexpectedly")
    return JSONResponse({"ok": False, "error": f"{operation}_FAILED"}, status_code=500)
