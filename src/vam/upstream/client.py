"""
Authenticated calls to the avatar platform API.

The client is stateless apart from pending 2FA challenges. Each call borrows
the session's cookie jar from the SessionStore, runs one or more requests
with it, and hands the (possibly rotated) jar back to the store, which
persists it. The per-session lock is held for the whole cycle.
"""

import base64
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote

import httpx

from vam.config import DEFAULT_UPSTREAM_URL
from vam.errors import SessionNotFound, TransportFailure, UpstreamRejected
from vam.logger import get_logger, short_sid
from vam.session.store import SessionStore
from vam.upstream.models import TWO_FACTOR_METHODS, AvatarPage, LoginOutcome

logger = get_logger(__name__)

USER_AGENT = "VRChatAvatarManager/0.1"
MAX_PAGE_SIZE = 100

CURRENT_USER_PATH = "/auth/user"
VERIFY_PATHS = {
    "totp": "/auth/twofactorauth/totp/verify",
    "emailOtp": "/auth/twofactorauth/emailotp/verify",
}


def basic_auth(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def read_json_safe(response: httpx.Response) -> Any:
    """Parse a response body as JSON, falling back to the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


class UpstreamClient:
    """
    Issues upstream requests on behalf of a session.

    Non-2xx responses raise ``UpstreamRejected`` carrying the status and
    body verbatim; connection problems raise ``TransportFailure``. Nothing
    is retried.
    """

    def __init__(
        self,
        store: SessionStore,
        base_url: str = DEFAULT_UPSTREAM_URL,
        user_agent: str = USER_AGENT,
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.transport = transport
        # Pending second-factor challenges; memory only
        self._challenges: dict[str, list[str]] = {}

    # ─── Session plumbing ────────────────────────────────────────────

    @asynccontextmanager
    async def _session(self, sid: str) -> AsyncIterator[httpx.AsyncClient]:
        """Open an HTTP client seeded with the session's jar, then store it back."""
        if not self.store.has(sid):
            raise SessionNotFound(sid)
        async with self.store.lock(sid):
            jar = self.store.get(sid)
            async with httpx.AsyncClient(
                base_url=self.base_url,
                cookies=jar,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                try:
                    yield client
                finally:
                    self._write_back(sid, client.cookies)

    def _write_back(self, sid: str, jar: httpx.Cookies) -> None:
        try:
            self.store.update(sid, jar)
        except SessionNotFound:
            # Logged out while the request was in flight
            logger.debug(f"Session {short_sid(sid)} vanished before cookies were saved")

    async def _send(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any
    ) -> Any:
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"Upstream {method} {path} failed: {type(e).__name__}")
            raise TransportFailure(f"Could not reach upstream: {type(e).__name__}") from e

        body = read_json_safe(response)
        logger.debug(f"Upstream {method} {path} -> {response.status_code}")
        if not response.is_success:
            raise UpstreamRejected(response.status_code, body)
        return body

    # ─── Authentication ──────────────────────────────────────────────

    async def login(self, sid: str, username: str, password: str) -> LoginOutcome:
        """
        Password login via HTTP Basic on the current-user endpoint.

        When the upstream wants a second factor the session jar now holds a
        partial-auth cookie that ``verify_two_factor`` must reuse.
        """
        logger.info(f"Login attempt for session {short_sid(sid)}")
        async with self._session(sid) as client:
            data = await self._send(
                client,
                "GET",
                CURRENT_USER_PATH,
                headers={"Authorization": basic_auth(username, password)},
            )

        methods = []
        if isinstance(data, dict):
            methods = list(data.get("requiresTwoFactorAuth") or [])

        if methods:
            self._prune_challenges()
            self._challenges[sid] = methods
            logger.info(f"Session {short_sid(sid)} requires 2FA: {', '.join(methods)}")
            return LoginOutcome(state="2fa_required", methods=methods)

        self._challenges.pop(sid, None)
        return LoginOutcome(state="logged_in", user=data if isinstance(data, dict) else None)

    async def verify_two_factor(self, sid: str, method: str, code: str) -> LoginOutcome:
        """
        Submit a second-factor code, then confirm the session is fully logged in.

        The method is not checked against the challenge's offered methods;
        a mismatch is only logged.

        Raises:
            ValueError: For a method name the upstream has no endpoint for.
        """
        if method not in VERIFY_PATHS:
            raise ValueError(
                f"Unknown 2FA method '{method}'. Expected one of: {', '.join(TWO_FACTOR_METHODS)}"
            )

        offered = self.pending_challenge(sid)
        if offered is not None and method not in offered:
            logger.warning(
                f"Session {short_sid(sid)} verifying with '{method}' "
                f"but challenge offered {', '.join(offered)}"
            )

        logger.info(f"Verifying 2FA ({method}) for session {short_sid(sid)}")
        async with self._session(sid) as client:
            await self._send(client, "POST", VERIFY_PATHS[method], json={"code": code})
            user = await self._send(client, "GET", CURRENT_USER_PATH)

        self._challenges.pop(sid, None)
        logger.info(f"2FA succeeded for session {short_sid(sid)}")
        return LoginOutcome(state="logged_in", user=user if isinstance(user, dict) else None)

    async def get_current_user(self, sid: str) -> Any:
        """Fetch the logged-in user; doubles as a session liveness check."""
        async with self._session(sid) as client:
            return await self._send(client, "GET", CURRENT_USER_PATH)

    def pending_challenge(self, sid: str) -> Optional[list[str]]:
        if sid in self._challenges and not self.store.has(sid):
            del self._challenges[sid]
        return self._challenges.get(sid)

    def forget_challenge(self, sid: str) -> None:
        self._challenges.pop(sid, None)

    def _prune_challenges(self) -> None:
        """Drop challenges whose session was deleted or evicted."""
        for sid in [s for s in self._challenges if not self.store.has(s)]:
            del self._challenges[sid]

    # ─── Avatars ─────────────────────────────────────────────────────

    async def list_avatars(
        self,
        sid: str,
        limit: int = MAX_PAGE_SIZE,
        offset: int = 0,
        sort: str = "updated",
        order: str = "descending",
    ) -> AvatarPage:
        """Fetch one page of the user's own avatars."""
        limit = min(max(int(limit), 1), MAX_PAGE_SIZE)
        offset = max(int(offset), 0)
        params = {
            "ownerId": "me",
            "releaseStatus": "all",
            "n": limit,
            "offset": offset,
            "sort": sort,
            "order": order,
        }
        async with self._session(sid) as client:
            data = await self._send(client, "GET", "/avatars", params=params)

        return AvatarPage(avatars=data if isinstance(data, list) else [], limit=limit, offset=offset)

    async def count_all_avatars(self, sid: str) -> int:
        """
        Count the user's avatars by walking every page of 100.

        Costs one upstream call per page plus a final short page, so use it
        sparingly.
        """
        total = 0
        offset = 0
        async with self._session(sid) as client:
            while True:
                data = await self._send(
                    client,
                    "GET",
                    "/avatars",
                    params={
                        "ownerId": "me",
                        "releaseStatus": "all",
                        "n": MAX_PAGE_SIZE,
                        "offset": offset,
                    },
                )
                page = data if isinstance(data, list) else []
                total += len(page)
                if len(page) < MAX_PAGE_SIZE:
                    break
                offset += MAX_PAGE_SIZE

        logger.debug(f"Session {short_sid(sid)} owns {total} avatar(s)")
        return total

    async def select_avatar(self, sid: str, avatar_id: str) -> Any:
        """Switch the user's current avatar."""
        path = f"/avatars/{quote(avatar_id, safe='')}/select"
        async with self._session(sid) as client:
            return await self._send(client, "PUT", path)
