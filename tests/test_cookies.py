"""Tests for cookie jar serialization."""

import time
from http.cookiejar import Cookie

import httpx

from vam.session.cookies import (
    cookie_from_dict,
    cookie_identities,
    copy_jar,
    deserialize_jar,
    serialize_jar,
)


def _cookie(name, value, domain="api.test", path="/", expires=None, secure=True, rest=None):
    return Cookie(
        version=0,
        name=name,
        value=value,
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=domain.startswith("."),
        domain_initial_dot=domain.startswith("."),
        path=path,
        path_specified=True,
        secure=secure,
        expires=expires,
        discard=expires is None,
        comment=None,
        comment_url=None,
        rest=rest or {},
    )


def _attrs(jar):
    return sorted(
        (c.domain, c.path, c.name, c.value, c.expires, c.secure, c.domain_specified, c._rest.get("HttpOnly", "-"))
        for c in jar.jar
    )


def test_round_trip_preserves_every_cookie():
    jar = httpx.Cookies()
    future = int(time.time()) + 3600
    jar.jar.set_cookie(_cookie("auth", "authcookie_ok", expires=future, rest={"HttpOnly": None}))
    jar.jar.set_cookie(_cookie("twoFactorAuth", "2fa", domain=".api.test"))
    jar.jar.set_cookie(_cookie("auth", "other-path", path="/api/1"))

    restored = deserialize_jar(serialize_jar(jar))

    assert cookie_identities(restored) == cookie_identities(jar)
    assert _attrs(restored) == _attrs(jar)


def test_expired_cookies_are_dropped():
    jar = httpx.Cookies()
    jar.jar.set_cookie(_cookie("old", "x", expires=int(time.time()) - 10))
    jar.jar.set_cookie(_cookie("live", "y"))

    names = [c["name"] for c in serialize_jar(jar)]
    assert names == ["live"]


def test_tough_cookie_entries_are_accepted():
    cookie = cookie_from_dict(
        {
            "key": "auth",
            "value": "authcookie_legacy",
            "expires": "2099-01-01T00:00:00.000Z",
            "domain": "api.vrchat.cloud",
            "path": "/",
            "secure": True,
            "httpOnly": True,
            "hostOnly": True,
            "creation": "2024-01-01T00:00:00.000Z",
        }
    )
    assert cookie.name == "auth"
    assert cookie.value == "authcookie_legacy"
    assert cookie.domain == "api.vrchat.cloud"
    assert cookie.secure is True
    assert cookie.expires > time.time()
    assert cookie.has_nonstandard_attr("HttpOnly")


def test_tough_cookie_domain_cookie_gets_leading_dot():
    cookie = cookie_from_dict({"key": "a", "value": "b", "domain": "vrchat.cloud", "hostOnly": False})
    assert cookie.domain == ".vrchat.cloud"
    assert cookie.domain_specified


def test_malformed_entries_are_skipped():
    jar = deserialize_jar([{"value": "no name"}, {"name": "ok", "value": "1", "domain": "api.test"}])
    assert [c.name for c in jar.jar] == ["ok"]


def test_copy_is_independent():
    jar = httpx.Cookies()
    jar.jar.set_cookie(_cookie("a", "1"))
    clone = copy_jar(jar)
    clone.jar.set_cookie(_cookie("b", "2"))

    assert {c.name for c in jar.jar} == {"a"}
    assert {c.name for c in clone.jar} == {"a", "b"}
