"""Shared pytest fixtures and configuration."""

import pytest

from fakes import UPSTREAM_URL, FakeUpstream, make_avatar
from vam.config import Config
from vam.crypto import EncryptionCodec, generate_secret
from vam.session.store import SessionStore
from vam.upstream.client import UpstreamClient


@pytest.fixture
def secret():
    return generate_secret()


@pytest.fixture
def session_file(tmp_path):
    return tmp_path / "sessions.json"


@pytest.fixture
def store(session_file):
    return SessionStore(session_file)


@pytest.fixture
def encrypted_store(session_file, secret):
    return SessionStore(session_file, codec=EncryptionCodec(secret))


@pytest.fixture
def fake_upstream():
    return FakeUpstream(avatars=[make_avatar(i) for i in range(30)])


@pytest.fixture
def upstream_client(store, fake_upstream):
    return UpstreamClient(store, base_url=UPSTREAM_URL, transport=fake_upstream.transport)


@pytest.fixture
def app_config(tmp_path):
    return Config(
        session_file=tmp_path / "sessions.json",
        settings_file=tmp_path / "settings.json",
        upstream_url=UPSTREAM_URL,
        cors_origins=["http://localhost:5173"],
    )


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing."""
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
