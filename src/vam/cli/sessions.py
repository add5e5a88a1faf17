"""
`vam sessions` - inspect and prune the stored browser sessions.

Run these while the server is stopped; the server rewrites the whole
session file on every change.
"""

from datetime import datetime

import typer

from vam.config import Config

sessions_app = typer.Typer(help="Inspect stored browser sessions")


def _open_store():
    from vam.crypto import EncryptionCodec
    from vam.session.store import SessionStore

    config = Config.from_env()
    return SessionStore(
        config.session_file,
        codec=EncryptionCodec(config.secret),
        ttl_seconds=config.session_ttl_seconds,
    )


@sessions_app.command("list")
def list_sessions():
    """List stored sessions and when they were last used."""
    from vam.logger import short_sid

    store = _open_store()
    sids = store.ids()
    if not sids:
        typer.echo("No stored sessions.")
        return

    typer.echo(f"{len(sids)} session(s) in {store.path}:")
    for sid in sids:
        touched = datetime.fromtimestamp(store.touched_at(sid)).strftime("%Y-%m-%d %H:%M")
        typer.echo(f"  {short_sid(sid)}  last used {touched}")


@sessions_app.command("purge")
def purge_sessions(
    all_sessions: bool = typer.Option(
        False, "--all", help="Remove every session instead of only expired ones"
    ),
):
    """Remove expired sessions (or all of them)."""
    store = _open_store()
    if all_sessions:
        removed = store.clear()
    else:
        removed = store.purge_expired()
    typer.echo(f"Removed {removed} session(s).")
