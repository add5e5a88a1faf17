"""
Top-level CLI commands: start, secret.
"""

from typing import Optional

import typer

from vam.config import Config


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from vam.logger import setup_logging

    setup_logging(level="DEBUG" if verbose else "WARNING")


def register_commands(app: typer.Typer) -> None:
    """Attach the top-level commands to the root Typer app."""

    @app.command()
    def start(
        host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
        port: Optional[int] = typer.Option(
            None, "--port", "-p", help="Port to listen on (0 picks a free port)"
        ),
        debug: bool = typer.Option(False, "--debug", help="Log at DEBUG level"),
    ):
        """Start the API server."""
        from vam.logger import setup_logging
        from vam.server import run

        config = Config.from_env()
        if host:
            config.host = host
        if port is not None:
            config.port = port
        if debug:
            config.log_level = "DEBUG"

        setup_logging(level=config.log_level, log_file=config.log_file)
        run(config)

    @app.command()
    def secret():
        """Print a new 64-hex-character secret for VAM_SECRET."""
        from vam.crypto import generate_secret

        typer.echo(generate_secret())
