"""
Exception types shared across the proxy.

Route handlers translate these into structured JSON responses; none of
them should escape the HTTP boundary.
"""

from typing import Any


class VamError(Exception):
    """Base class for all proxy errors."""


class SessionNotFound(VamError):
    """The session id is unknown (never issued, logged out, or evicted)."""

    def __init__(self, sid: str):
        super().__init__("Session not found")
        self.sid = sid


class UpstreamRejected(VamError):
    """The upstream API answered with a non-2xx status."""

    def __init__(self, status: int, body: Any):
        super().__init__(f"Upstream rejected request with status {status}")
        self.status = status
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "status": self.status, "body": self.body}


class TransportFailure(VamError):
    """The upstream API could not be reached."""


class DecryptionError(VamError):
    """An encrypted blob is malformed, tampered with, or sealed with another key."""


class EncryptionUnavailable(VamError):
    """No usable at-rest secret is configured."""
