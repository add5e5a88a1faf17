"""
VAM CLI - run and maintain the local API server.

This package splits CLI commands into focused modules:
- main:     start, secret
- sessions: list, purge
"""

import typer

from vam.cli.main import configure_logging, register_commands
from vam.cli.sessions import sessions_app

app = typer.Typer(help="VAM CLI - local API server for the VRC Avatar Manager")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    VAM CLI - local API server for the VRC Avatar Manager.
    """
    configure_logging(verbose)


register_commands(app)

app.add_typer(sessions_app, name="sessions")

if __name__ == "__main__":
    app()
