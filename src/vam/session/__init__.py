"""
Browser-session state: cookie jar serialization and the session store.
"""

from vam.session.store import Session, SessionStore

__all__ = ["Session", "SessionStore"]
