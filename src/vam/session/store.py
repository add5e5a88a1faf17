"""
Session store: maps opaque session ids to upstream cookie jars.

The whole map is written to a single file after every mutation. When an
``EncryptionCodec`` is available the file holds an encrypted blob of the JSON
map, otherwise plain JSON. Plaintext files are migrated to the encrypted
form on the next write.
"""

import asyncio
import json
import os
import secrets
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

from vam.crypto import EncryptionCodec
from vam.errors import DecryptionError, SessionNotFound
from vam.logger import get_logger, short_sid
from vam.session.cookies import copy_jar, deserialize_jar, serialize_jar

logger = get_logger(__name__)


@dataclass
class Session:
    """Authentication state for one browser session."""

    id: str
    jar: httpx.Cookies = field(default_factory=httpx.Cookies)
    touched_at: float = field(default_factory=time.time)


class SessionStore:
    """
    Owns every Session and its persistence.

    Only ``create``, ``has``, ``get``, ``update`` and ``delete`` touch the
    map. ``lock(sid)`` hands out a per-session ``asyncio.Lock`` that callers
    hold across a read-jar / upstream-call / update cycle so two requests for
    the same session cannot overwrite each other's cookies.
    """

    def __init__(
        self,
        path: Path | str,
        codec: Optional[EncryptionCodec] = None,
        ttl_seconds: Optional[float] = None,
    ):
        self.path = Path(path)
        self.codec = codec or EncryptionCodec(None)
        self.ttl_seconds = ttl_seconds
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._skipped_on_load = 0

        if not self.codec.is_available():
            logger.info("At-rest encryption unavailable; sessions are stored as plaintext")

        self.load_all()

    # ─── Public operations ───────────────────────────────────────────

    def create(self) -> str:
        """Register a new session with an empty jar and persist immediately."""
        self.purge_expired(persist=False)
        sid = secrets.token_hex(16)
        self._sessions[sid] = Session(id=sid)
        self.persist_all()
        logger.info(f"Created session {short_sid(sid)}")
        return sid

    def has(self, sid: Optional[str]) -> bool:
        if not sid or sid not in self._sessions:
            return False
        if self._is_expired(self._sessions[sid]):
            self.delete(sid)
            return False
        return True

    def get(self, sid: str) -> httpx.Cookies:
        """
        Return a copy of the session's jar.

        Raises:
            SessionNotFound: If the id is unknown.
        """
        session = self._sessions.get(sid)
        if session is None:
            raise SessionNotFound(sid)
        return copy_jar(session.jar)

    def update(self, sid: str, jar: httpx.Cookies) -> None:
        """
        Replace the session's jar and persist the full map.

        Raises:
            SessionNotFound: If the session was deleted in the meantime.
        """
        session = self._sessions.get(sid)
        if session is None:
            raise SessionNotFound(sid)
        session.jar = copy_jar(jar)
        session.touched_at = time.time()
        self.persist_all()

    def delete(self, sid: str) -> bool:
        """Forget a session. Returns True if it existed."""
        self._locks.pop(sid, None)
        if self._sessions.pop(sid, None) is None:
            return False
        self.persist_all()
        logger.info(f"Deleted session {short_sid(sid)}")
        return True

    def lock(self, sid: str) -> asyncio.Lock:
        lock = self._locks.get(sid)
        if lock is None:
            lock = self._locks[sid] = asyncio.Lock()
        return lock

    def ids(self) -> list[str]:
        return list(self._sessions)

    def touched_at(self, sid: str) -> float:
        session = self._sessions.get(sid)
        if session is None:
            raise SessionNotFound(sid)
        return session.touched_at

    def purge_expired(self, persist: bool = True) -> int:
        """Evict sessions idle for longer than the TTL. Returns the count."""
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s)]
        for sid in expired:
            self._sessions.pop(sid, None)
            self._locks.pop(sid, None)

        # Sessions already skipped by load_all are still in the file
        removed = len(expired) + self._skipped_on_load
        self._skipped_on_load = 0
        if removed:
            logger.info(f"Evicted {removed} expired session(s)")
            if persist:
                self.persist_all()
        return removed

    def clear(self) -> int:
        """Drop every session. Returns how many were removed."""
        count = len(self._sessions)
        self._sessions.clear()
        self._locks.clear()
        self.persist_all()
        return count

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, sid: object) -> bool:
        return isinstance(sid, str) and self.has(sid)

    # ─── Persistence ─────────────────────────────────────────────────

    def load_all(self) -> None:
        """
        Load sessions from the backing file.

        Any failure to read, decrypt or parse the file leaves the store
        empty. Previously stored sessions then stay unreachable until the
        file is overwritten by the next save.
        """
        self._sessions.clear()
        self._skipped_on_load = 0
        if not self.path.exists():
            return

        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.error(f"Failed to read session file {self.path}: {e}")
            return

        if not raw:
            return

        if raw.startswith("{"):
            text = raw
            if self.codec.is_available():
                logger.info("Found plaintext session file; it will be encrypted on next save")
        elif self.codec.is_available():
            try:
                text = self.codec.decrypt(raw)
            except DecryptionError:
                logger.warning("Session file could not be decrypted; starting with no sessions")
                return
        else:
            logger.warning(
                "Session file looks encrypted but no secret is configured; "
                "starting with no sessions"
            )
            return

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Session file is not valid JSON ({e}); starting with no sessions")
            return

        if not isinstance(data, dict):
            logger.warning("Session file has unexpected structure; starting with no sessions")
            return

        now = time.time()
        for sid, record in data.items():
            session = self._session_from_record(sid, record, now)
            if session is None:
                logger.warning(f"Skipping malformed session record {short_sid(sid)}")
                continue
            if self._is_expired(session):
                self._skipped_on_load += 1
                continue
            self._sessions[sid] = session

        logger.info(f"Loaded {len(self._sessions)} session(s) from {self.path}")

    def persist_all(self) -> None:
        """
        Write the full session map to disk.

        If encryption is available but fails, nothing is written so that
        confidential state is never silently downgraded to plaintext.
        """
        payload = json.dumps(
            {sid: self._record_for(s) for sid, s in self._sessions.items()},
            indent=2,
        )

        if self.codec.is_available():
            try:
                payload = self.codec.encrypt(payload)
            except Exception as e:
                logger.error(f"Encrypting sessions failed, not saving: {type(e).__name__}")
                return

        self._write_atomic(payload)

    # ─── Internals ───────────────────────────────────────────────────

    def _is_expired(self, session: Session) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.time() - session.touched_at > self.ttl_seconds

    @staticmethod
    def _record_for(session: Session) -> dict[str, Any]:
        return {"cookies": serialize_jar(session.jar), "touchedAt": session.touched_at}

    @staticmethod
    def _session_from_record(sid: str, record: Any, now: float) -> Optional[Session]:
        if not isinstance(record, dict):
            return None
        cookies = record.get("cookies", [])
        if not isinstance(cookies, list):
            return None
        touched_at = record.get("touchedAt")
        if not isinstance(touched_at, (int, float)):
            touched_at = now
        return Session(id=sid, jar=deserialize_jar(cookies), touched_at=float(touched_at))

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".sessions_tmp_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
