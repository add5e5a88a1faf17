"""
Starlette-based web server for the VAM API.

This server provides a REST API with the following endpoints:
- /health: Liveness probe for the desktop shell
- /auth/login, /auth/2fa, /auth/me, /auth/logout: Upstream authentication
- /avatars: Paged avatar listing (with total on the first page)
- /avatars/search: Name search across the whole catalog
- /avatars/{avatar_id}/select: Switch the current avatar
- /settings: Opaque UI settings blob

Each browser gets a server-side session identified by the ``sid`` cookie;
the session holds the upstream cookie jar.
"""

import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from vam.config import Config
from vam.crypto import EncryptionCodec
from vam.logger import get_logger, setup_logging
from vam.middleware import RequestLoggingMiddleware, SessionCookieMiddleware
from vam.routes.auth_routes import login, logout, me, verify_two_factor
from vam.routes.avatar_routes import list_avatars, search_avatars, select_avatar
from vam.routes.health_routes import health_check
from vam.routes.settings_routes import get_settings, save_settings
from vam.search import SearchAggregator
from vam.session.store import SessionStore
from vam.settings_store import SettingsStore
from vam.upstream.client import UpstreamClient

logger = get_logger(__name__)


def create_app(
    config: Optional[Config] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Starlette:
    """
    Build the application.

    Args:
        config: Settings to use; read from the environment when omitted.
        transport: Optional httpx transport for upstream calls.

    Returns:
        A Starlette app whose services are created on startup.
    """
    config = config or Config.from_env()

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Application startup - initializing services")

        codec = EncryptionCodec(config.secret)
        sessions = SessionStore(
            config.session_file, codec=codec, ttl_seconds=config.session_ttl_seconds
        )
        upstream = UpstreamClient(
            sessions,
            base_url=config.upstream_url,
            timeout=config.upstream_timeout,
            transport=transport,
        )

        app.state.config = config
        app.state.sessions = sessions
        app.state.upstream = upstream
        app.state.search = SearchAggregator(upstream)
        app.state.settings = SettingsStore(config.settings_file)

        yield

        logger.info("Application shutdown")

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/login", login, methods=["POST"]),
        Route("/auth/2fa", verify_two_factor, methods=["POST"]),
        Route("/auth/me", me, methods=["GET"]),
        Route("/auth/logout", logout, methods=["POST"]),
        Route("/avatars", list_avatars, methods=["GET"]),
        Route("/avatars/search", search_avatars, methods=["GET"]),
        Route("/avatars/{avatar_id}/select", select_avatar, methods=["POST"]),
        Route("/settings", get_settings, methods=["GET"]),
        Route("/settings", save_settings, methods=["POST"]),
    ]

    # Packaged builds serve the web UI from the same origin so cookies work
    if config.web_dir and config.web_dir.is_dir():
        routes.append(Mount("/", app=StaticFiles(directory=config.web_dir, html=True)))
        logger.info(f"Serving web UI from {config.web_dir}")

    return Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.cors_origins,
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            ),
            Middleware(RequestLoggingMiddleware),
            Middleware(SessionCookieMiddleware),
        ],
        lifespan=lifespan,
    )


def report_port(effective_port: int) -> None:
    """Report the server port on stdout for the parent process."""
    port_msg = f"SERVER_PORT:{effective_port}"
    logger.info(port_msg)
    print(port_msg, flush=True)


def run(config: Optional[Config] = None) -> None:
    """Serve the API with uvicorn until interrupted."""
    import asyncio

    import uvicorn

    config = config or Config.from_env()
    app = create_app(config)

    async def main():
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.host,
                port=config.port,
                log_level=config.log_level.lower(),
                log_config=None,
            )
        )
        serve_task = asyncio.create_task(server.serve())

        while not server.started:
            if serve_task.done():
                await serve_task
                return
            await asyncio.sleep(0.1)

        effective_port = config.port
        if config.port == 0 and server.servers and server.servers[0].sockets:
            effective_port = server.servers[0].sockets[0].getsockname()[1]
        report_port(effective_port)

        await serve_task

    logger.info(f"Starting VAM API on http://{config.host}:{config.port}")
    asyncio.run(main())


if __name__ == "__main__":
    _config = Config.from_env()
    if "--debug" in sys.argv:
        os.environ["LOG_LEVEL"] = "DEBUG"
        _config.log_level = "DEBUG"
    setup_logging(level=_config.log_level, log_file=_config.log_file)
    run(_config)
