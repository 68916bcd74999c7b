"""Archive harvester CLI.

Usage:
    python cli/main.py --help

Command groups:
    db        database setup and counts
    sections  configured archive sections
    run       full harvest (browser + language model)
    rag       chunking, embedding and semantic search
"""

from __future__ import annotations

import sys
from pathlib import Path

# Put the project root on sys.path so `python cli/main.py` works from any
# working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import logging

import sentry_sdk
import typer

from cli.commands.harvest import run_cmd, sections_cmd
from cli.commands.rag import rag_app
from harvester.config import settings
from harvester.db import get_connection, init_db
from harvester.db.posts import count_posts

app = typer.Typer(
    name="harvester",
    help="Archive harvester CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Configure logging and error reporting once for every command."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment,
            traces_sample_rate=settings.sentry_traces_sample_rate,
        )


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("stats")
def db_stats() -> None:
    """Show stored post counts per section."""
    conn = get_connection()
    init_db(conn)
    try:
        counts = count_posts(conn)
    finally:
        conn.close()
    if not counts:
        typer.echo("[db stats] No posts stored yet.")
        return
    for section, n in counts.items():
        typer.echo(f"  {section:<16} {n}")
    typer.echo(f"  {'total':<16} {sum(counts.values())}")


# ---------------------------------------------------------------------------
# Harvest and RAG commands
# ---------------------------------------------------------------------------
app.command("sections")(sections_cmd)
app.command("run")(run_cmd)
app.add_typer(rag_app, name="rag")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
