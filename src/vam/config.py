"""
Runtime configuration for the VAM API.

Values come from the process environment (optionally a ``.env`` file). The
desktop shell passes file locations and the at-rest secret through
``VAM_*`` variables; nothing below the config layer reads the environment.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_UPSTREAM_URL = "https://api.vrchat.cloud/api/1"
DEFAULT_PORT = 8787
DEFAULT_CORS_ORIGINS = ["http://localhost:5173"]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: str) -> Path:
    return Path(os.getenv(name) or default).resolve()


@dataclass
class Config:
    """Settings for one server process."""

    session_file: Path = field(default_factory=lambda: Path("sessions.json").resolve())
    settings_file: Path = field(default_factory=lambda: Path("settings.json").resolve())
    secret: Optional[str] = None
    web_dir: Optional[Path] = None
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_timeout: Optional[float] = 30.0
    session_ttl_days: float = 30.0
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def session_ttl_seconds(self) -> Optional[float]:
        """TTL for idle sessions, or None when eviction is disabled."""
        if self.session_ttl_days <= 0:
            return None
        return self.session_ttl_days * 24 * 60 * 60

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Config":
        """
        Build a Config from environment variables.

        Args:
            env_file: Optional ``.env`` path; defaults to dotenv's lookup.

        Returns:
            A populated Config.
        """
        load_dotenv(env_file)

        web_dir = os.getenv("VAM_WEB_DIR")
        origins = os.getenv("VAM_CORS_ORIGINS")
        timeout = _env_float("VAM_UPSTREAM_TIMEOUT", 30.0)

        return cls(
            session_file=_env_path("VAM_SESSION_FILE", "sessions.json"),
            settings_file=_env_path("VAM_SETTINGS_FILE", "settings.json"),
            secret=os.getenv("VAM_SECRET") or None,
            web_dir=Path(web_dir).resolve() if web_dir else None,
            host=os.getenv("VAM_HOST", "127.0.0.1"),
            port=_env_int("VAM_PORT", _env_int("PORT", DEFAULT_PORT)),
            upstream_url=os.getenv("VAM_UPSTREAM_URL", DEFAULT_UPSTREAM_URL).rstrip("/"),
            upstream_timeout=timeout if timeout > 0 else None,
            session_ttl_days=_env_float("VAM_SESSION_TTL_DAYS", 30.0),
            cors_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else list(DEFAULT_CORS_ORIGINS)
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
        )
