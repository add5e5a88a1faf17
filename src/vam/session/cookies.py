"""
Cookie jar (de)serialization.

Jars are ``httpx.Cookies`` objects backed by ``http.cookiejar.CookieJar``.
Each cookie becomes a plain dict carrying every attribute of
``http.cookiejar.Cookie`` so a jar survives a save/load cycle unchanged.

Session files written by the Node.js build of the app store tough-cookie
JSON instead; ``cookie_from_dict`` accepts that shape too.
"""

from datetime import datetime
from http.cookiejar import Cookie
from typing import Any, Optional

import httpx

from vam.logger import get_logger

logger = get_logger(__name__)


def cookie_to_dict(cookie: Cookie) -> dict[str, Any]:
    """Serialize a single cookie without losing any attribute."""
    return {
        "name": cookie.name,
        "value": cookie.value,
        "domain": cookie.domain,
        "path": cookie.path,
        "expires": cookie.expires,
        "secure": cookie.secure,
        "version": cookie.version,
        "port": cookie.port,
        "port_specified": cookie.port_specified,
        "domain_specified": cookie.domain_specified,
        "domain_initial_dot": cookie.domain_initial_dot,
        "path_specified": cookie.path_specified,
        "discard": cookie.discard,
        "comment": cookie.comment,
        "comment_url": cookie.comment_url,
        "rfc2109": cookie.rfc2109,
        "rest": dict(getattr(cookie, "_rest", {}) or {}),
    }


def _parse_tough_expiry(value: Any) -> Optional[int]:
    if value in (None, "Infinity", ""):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp())
    except ValueError:
        return None


def _from_tough_cookie(data: dict[str, Any]) -> Cookie:
    domain = data.get("domain") or ""
    host_only = bool(data.get("hostOnly", False))
    if not host_only and domain and not domain.startswith("."):
        domain = "." + domain
    expires = _parse_tough_expiry(data.get("expires"))
    rest = {"HttpOnly": None} if data.get("httpOnly") else {}

    return Cookie(
        version=0,
        name=data["key"],
        value=data.get("value", ""),
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=not host_only,
        domain_initial_dot=domain.startswith("."),
        path=data.get("path") or "/",
        path_specified=True,
        secure=bool(data.get("secure", False)),
        expires=expires,
        discard=expires is None,
        comment=None,
        comment_url=None,
        rest=rest,
    )


def cookie_from_dict(data: dict[str, Any]) -> Cookie:
    """Build a cookie from ``cookie_to_dict`` output or a tough-cookie entry."""
    if "name" not in data and "key" in data:
        return _from_tough_cookie(data)

    return Cookie(
        version=data.get("version", 0),
        name=data["name"],
        value=data.get("value"),
        port=data.get("port"),
        port_specified=data.get("port_specified", False),
        domain=data.get("domain", ""),
        domain_specified=data.get("domain_specified", False),
        domain_initial_dot=data.get("domain_initial_dot", False),
        path=data.get("path", "/"),
        path_specified=data.get("path_specified", False),
        secure=data.get("secure", False),
        expires=data.get("expires"),
        discard=data.get("discard", True),
        comment=data.get("comment"),
        comment_url=data.get("comment_url"),
        rest=data.get("rest") or {},
        rfc2109=data.get("rfc2109", False),
    )


def serialize_jar(jar: httpx.Cookies) -> list[dict[str, Any]]:
    """Serialize every cookie in a jar, dropping ones that have expired."""
    jar.jar.clear_expired_cookies()
    return [cookie_to_dict(cookie) for cookie in jar.jar]


def deserialize_jar(entries: list[dict[str, Any]]) -> httpx.Cookies:
    """Rebuild a jar from serialized cookies, skipping malformed entries."""
    jar = httpx.Cookies()
    for entry in entries or []:
        try:
            jar.jar.set_cookie(cookie_from_dict(entry))
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed cookie entry: {e}")
    return jar


def copy_jar(jar: httpx.Cookies) -> httpx.Cookies:
    """Return an independent jar holding the same cookies."""
    return httpx.Cookies(jar)


def cookie_identities(jar: httpx.Cookies) -> set[tuple[str, str, str]]:
    """The (domain, path, name) identity of every cookie in a jar."""
    return {(c.domain, c.path, c.name) for c in jar.jar}
