"""
Name search over the upstream avatar listing.

The upstream API cannot filter by name, so a search walks the user's whole
catalog page by page and matches names locally. Each call is an O(N) scan
over every avatar the user owns; no index is kept between calls.
"""

from dataclasses import dataclass, field
from typing import Any

from vam.logger import get_logger, short_sid
from vam.upstream.client import MAX_PAGE_SIZE, UpstreamClient
from vam.upstream.models import AvatarRecord

logger = get_logger(__name__)


@dataclass
class SearchWindow:
    """The ``[offset, offset + limit)`` slice of all matches for a query."""

    query: str
    offset: int
    limit: int
    total_matches: int = 0
    items: list[AvatarRecord] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total_matches

    def to_dict(self) -> dict[str, Any]:
        return {
            "q": self.query,
            "totalMatches": self.total_matches,
            "avatars": [item.to_dict() for item in self.items],
            "hasMore": self.has_more,
            "offset": self.offset,
            "n": self.limit,
        }


class SearchAggregator:
    """Case-insensitive substring search built on ``UpstreamClient.list_avatars``."""

    def __init__(self, client: UpstreamClient, page_size: int = MAX_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    async def search(self, sid: str, query: str, limit: int, offset: int) -> SearchWindow:
        """
        Find avatars whose name contains ``query``.

        An empty or whitespace-only query returns an empty window without
        contacting the upstream; otherwise it would enumerate everything.
        """
        needle = (query or "").strip().casefold()
        window = SearchWindow(query=(query or "").strip(), offset=offset, limit=limit)
        if not needle:
            return window

        page_offset = 0
        pages = 0
        while True:
            page = await self.client.list_avatars(sid, self.page_size, page_offset)
            pages += 1
            if not page.avatars:
                break

            for avatar in page.avatars:
                name = str(avatar.get("name") or "")
                if needle not in name.casefold():
                    continue
                index = window.total_matches
                window.total_matches += 1
                if offset <= index < offset + limit:
                    window.items.append(AvatarRecord.from_api(avatar))

            if len(page.avatars) < self.page_size:
                break
            page_offset += self.page_size

        logger.debug(
            f"Search for session {short_sid(sid)} scanned {pages} page(s), "
            f"{window.total_matches} match(es)"
        )
        return window
