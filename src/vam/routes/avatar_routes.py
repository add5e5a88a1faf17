"""
Avatar API routes: paged listing, name search and selection.
"""

import asyncio

from starlette.requests import Request
from starlette.responses import JSONResponse

from vam.logger import get_logger, short_sid
from vam.routes.common import error_response, page_params
from vam.upstream.models import AvatarRecord

logger = get_logger(__name__)


async def list_avatars(request: Request) -> JSONResponse:
    """
    List the user's avatars one page at a time.

    Query params:
        - n: Page size (1..100, default 100)
        - offset: Items to skip (default 0)
        - sort, order: Passed through to the upstream

    The first page (``offset == 0``) also walks the whole catalog to report
    ``total``; later pages omit it.
    """
    sid = request.state.sid
    upstream = request.app.state.upstream
    n, offset = page_params(request, 100)
    sort = request.query_params.get("sort") or "updated"
    order = request.query_params.get("order") or "descending"

    tasks = [upstream.list_avatars(sid, n, offset, sort, order)]
    if offset == 0:
        tasks.append(upstream.count_all_avatars(sid))

    results = await asyncio.gather(*tasks, return_exceptions=True)
    page = results[0]
    if isinstance(page, BaseException):
        return error_response(page, "AVATARS")

    data = {
        "ok": True,
        "avatars": [AvatarRecord.from_api(a).to_dict() for a in page.avatars],
        "offset": offset,
        "n": n,
        "hasMore": page.has_more,
    }

    if len(results) > 1:
        total = results[1]
        if isinstance(total, BaseException):
            logger.warning(
                f"Counting avatars for session {short_sid(sid)} failed: {type(total).__name__}"
            )
        else:
            data["total"] = total

    return JSONResponse(data)


async def search_avatars(request: Request) -> JSONResponse:
    """
    Search the user's avatars by name.

    Query params:
        - q: Case-insensitive substring; empty returns no results
        - n: Window size (1..100, default 50)
        - offset: Offset into the match list (default 0)
    """
    n, offset = page_params(request, 50)
    query = request.query_params.get("q") or ""

    try:
        window = await request.app.state.search.search(request.state.sid, query, n, offset)
    except Exception as e:
        return error_response(e, "SEARCH")

    return JSONResponse({"ok": True, **window.to_dict()})


async def select_avatar(request: Request) -> JSONResponse:
    """Switch to the avatar named in the path."""
    avatar_id = request.path_params["avatar_id"]
    try:
        await request.app.state.upstream.select_avatar(request.state.sid, avatar_id)
    except Exception as e:
        return error_response(e, "SELECT")
    return JSONResponse({"ok": True})
