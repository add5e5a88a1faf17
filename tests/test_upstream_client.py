"""Tests for UpstreamClient against an in-memory upstream."""

import asyncio
import base64
import time
from unittest.mock import patch

import httpx
import pytest

from fakes import UPSTREAM_URL, FakeUpstream, make_avatar
from vam.errors import SessionNotFound, TransportFailure, UpstreamRejected
from vam.session.store import SessionStore
from vam.upstream.client import UpstreamClient, basic_auth, read_json_safe


def _client(store, fake):
    return UpstreamClient(store, base_url=UPSTREAM_URL, transport=fake.transport)


def test_basic_auth_header():
    expected = base64.b64encode("ユーザー:p@ss:word".encode("utf-8")).decode()
    assert basic_auth("ユーザー", "p@ss:word") == f"Basic {expected}"


def test_read_json_safe_falls_back_to_text():
    assert read_json_safe(httpx.Response(200, json={"a": 1})) == {"a": 1}
    assert read_json_safe(httpx.Response(500, text="<html>oops</html>")) == "<html>oops</html>"


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_without_2fa(self, store, fake_upstream, upstream_client):
        sid = store.create()
        outcome = await upstream_client.login(sid, "alice", "hunter2")

        assert outcome.state == "logged_in"
        assert outcome.to_dict() == {"ok": True, "state": "logged_in", "displayName": "Alice"}
        assert store.get(sid).get("auth") == "authcookie_ok"

    @pytest.mark.asyncio
    async def test_login_sends_basic_auth_and_user_agent(self, store, fake_upstream):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"displayName": "Alice"})

        client = UpstreamClient(
            store, base_url=UPSTREAM_URL, transport=httpx.MockTransport(handler)
        )
        await client.login(store.create(), "alice", "hunter2")

        assert seen[0].url == httpx.URL(f"{UPSTREAM_URL}/auth/user")
        assert seen[0].headers["authorization"] == basic_auth("alice", "hunter2")
        assert seen[0].headers["user-agent"] == "VRChatAvatarManager/0.1"

    @pytest.mark.asyncio
    async def test_bad_password_is_rejected_verbatim(self, store, upstream_client):
        sid = store.create()
        with pytest.raises(UpstreamRejected) as exc:
            await upstream_client.login(sid, "alice", "wrong")

        assert exc.value.status == 401
        assert exc.value.body == {"error": {"message": "Invalid Username/Email or Password"}}
        assert exc.value.to_dict()["ok"] is False

    @pytest.mark.asyncio
    async def test_login_requiring_email_otp(self, store):
        fake = FakeUpstream(two_factor=["emailOtp"])
        client = _client(store, fake)
        sid = store.create()

        outcome = await client.login(sid, "alice", "hunter2")

        assert outcome.to_dict() == {"ok": True, "state": "2fa_required", "methods": ["emailOtp"]}
        assert client.pending_challenge(sid) == ["emailOtp"]
        # Partial-auth cookie is kept for the verify call
        assert store.get(sid).get("auth") == "authcookie_ok"

    @pytest.mark.asyncio
    async def test_unknown_session(self, upstream_client):
        with pytest.raises(SessionNotFound):
            await upstream_client.login("missing", "alice", "hunter2")

    @pytest.mark.asyncio
    async def test_transport_error(self, store, fake_upstream, upstream_client):
        fake_upstream.fail_with = httpx.ConnectError("refused")
        with pytest.raises(TransportFailure):
            await upstream_client.login(store.create(), "alice", "hunter2")


class TestTwoFactor:
    @pytest.fixture
    def fake(self):
        return FakeUpstream(two_factor=["emailOtp"])

    @pytest.mark.asyncio
    async def test_full_flow(self, store, fake):
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")

        outcome = await client.verify_two_factor(sid, "emailOtp", "123456")

        assert outcome.to_dict() == {"ok": True, "state": "logged_in", "displayName": "Alice"}
        assert [c[1] for c in fake.calls] == [
            "/auth/user",
            "/auth/twofactorauth/emailotp/verify",
            "/auth/user",
        ]
        assert client.pending_challenge(sid) is None
        assert (await client.get_current_user(sid))["displayName"] == "Alice"

    @pytest.mark.asyncio
    async def test_totp_uses_its_own_path(self, store, fake):
        fake.two_factor = ["totp"]
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")
        await client.verify_two_factor(sid, "totp", "123456")
        assert fake.calls_to("/auth/twofactorauth/totp/verify")

    @pytest.mark.asyncio
    async def test_wrong_method_is_still_attempted(self, store, fake):
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")

        # The fake accepts either path; the method is not checked locally
        await client.verify_two_factor(sid, "totp", "123456")

        assert fake.calls_to("/auth/twofactorauth/totp/verify")
        assert not fake.calls_to("/auth/twofactorauth/emailotp/verify")

    @pytest.mark.asyncio
    async def test_bad_code_short_circuits(self, store, fake):
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")
        fake.calls.clear()

        with pytest.raises(UpstreamRejected) as exc:
            await client.verify_two_factor(sid, "emailOtp", "000000")

        assert exc.value.status == 400
        assert [c[1] for c in fake.calls] == ["/auth/twofactorauth/emailotp/verify"]
        assert client.pending_challenge(sid) == ["emailOtp"]

    @pytest.mark.asyncio
    async def test_unknown_method_makes_no_call(self, store, fake):
        client = _client(store, fake)
        with pytest.raises(ValueError, match="Unknown 2FA method"):
            await client.verify_two_factor(store.create(), "sms", "123456")
        assert fake.calls == []

    @pytest.mark.asyncio
    async def test_challenge_goes_away_with_its_session(self, store, fake):
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")

        store.delete(sid)

        assert client.pending_challenge(sid) is None
        assert sid not in client._challenges

    @pytest.mark.asyncio
    async def test_new_challenge_prunes_evicted_sessions(self, store, fake):
        client = _client(store, fake)
        stale = store.create()
        await client.login(stale, "alice", "hunter2")
        store.ttl_seconds = 60

        with patch("vam.session.store.time.time", return_value=time.time() + 120):
            fresh = store.create()
            await client.login(fresh, "alice", "hunter2")

            assert list(client._challenges) == [fresh]
            assert client.pending_challenge(fresh) == ["emailOtp"]

    @pytest.mark.asyncio
    async def test_session_survives_restart_after_2fa(self, session_file, fake):
        store = SessionStore(session_file)
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")
        await client.verify_two_factor(sid, "emailOtp", "123456")

        restarted = SessionStore(session_file)
        user = await _client(restarted, fake).get_current_user(sid)
        assert user["displayName"] == "Alice"


class TestAvatars:
    @pytest.fixture
    def logged_in(self, store):
        sid = store.create()
        jar = httpx.Cookies()
        jar.set("auth", "authcookie_ok", domain="api.test", path="/")
        store.update(sid, jar)
        return sid

    @pytest.mark.asyncio
    async def test_list_page(self, logged_in, fake_upstream, upstream_client):
        page = await upstream_client.list_avatars(logged_in, 10, 5, "name", "ascending")

        assert [a["id"] for a in page.avatars] == [f"avtr_{i:04d}" for i in range(5, 15)]
        assert page.has_more is True
        method, path, params = fake_upstream.calls[-1]
        assert params == {
            "ownerId": "me",
            "releaseStatus": "all",
            "n": "10",
            "offset": "5",
            "sort": "name",
            "order": "ascending",
        }

    @pytest.mark.asyncio
    async def test_short_page_has_no_more(self, logged_in, upstream_client):
        page = await upstream_client.list_avatars(logged_in, 100, 0)
        assert len(page.avatars) == 30
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, logged_in, fake_upstream, upstream_client):
        await upstream_client.list_avatars(logged_in, 500, -3)
        assert fake_upstream.calls[-1][2]["n"] == "100"
        assert fake_upstream.calls[-1][2]["offset"] == "0"

    @pytest.mark.asyncio
    async def test_listing_requires_login(self, store, upstream_client):
        with pytest.raises(UpstreamRejected) as exc:
            await upstream_client.list_avatars(store.create())
        assert exc.value.status == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total,calls", [(0, 1), (1, 1), (99, 1), (230, 3), (250, 3)])
    async def test_count_all_avatars(self, store, total, calls):
        fake = FakeUpstream(avatars=[make_avatar(i) for i in range(total)])
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")
        fake.calls.clear()

        assert await client.count_all_avatars(sid) == total
        assert len(fake.calls) == calls
        assert all(c[2]["n"] == "100" for c in fake.calls)

    @pytest.mark.asyncio
    async def test_count_on_exact_multiple_fetches_one_empty_page(self, store):
        fake = FakeUpstream(avatars=[make_avatar(i) for i in range(200)])
        client = _client(store, fake)
        sid = store.create()
        await client.login(sid, "alice", "hunter2")
        fake.calls.clear()

        assert await client.count_all_avatars(sid) == 200
        assert [c[2]["offset"] for c in fake.calls] == ["0", "100", "200"]

    @pytest.mark.asyncio
    async def test_select_avatar(self, logged_in, fake_upstream, upstream_client):
        body = await upstream_client.select_avatar(logged_in, "avtr_0003")
        assert body["currentAvatar"] == "avtr_0003"
        method, path, _ = fake_upstream.calls[-1]
        assert (method, path) == ("PUT", "/avatars/avtr_0003/select")

    @pytest.mark.asyncio
    async def test_select_unknown_avatar(self, logged_in, upstream_client):
        with pytest.raises(UpstreamRejected) as exc:
            await upstream_client.select_avatar(logged_in, "avtr_missing")
        assert exc.value.status == 404


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_calls_for_one_session_are_serialized(self, store):
        active = 0
        peak = 0

        async def handler(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return httpx.Response(200, json=[])

        client = UpstreamClient(
            store, base_url=UPSTREAM_URL, transport=httpx.MockTransport(handler)
        )
        sid = store.create()
        await asyncio.gather(*(client.list_avatars(sid) for _ in range(5)))
        assert peak == 1

    @pytest.mark.asyncio
    async def test_different_sessions_run_concurrently(self, store):
        active = 0
        peak = 0

        async def handler(request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return httpx.Response(200, json=[])

        client = UpstreamClient(
            store, base_url=UPSTREAM_URL, transport=httpx.MockTransport(handler)
        )
        sids = [store.create() for _ in range(3)]
        await asyncio.gather(*(client.list_avatars(sid) for sid in sids))
        assert peak > 1
