"""SQLite connection factory for the harvest store.

One database holds the ``posts`` table that seeds each run's dedup set and the
``chunks``/``chunks_vec`` tables used by the RAG commands.  The chunk triggers
reach into ``chunks_vec``, so the vector extension is loaded on every
connection.

Usage::

    from harvester.db.connection import get_connection
    from harvester.db.posts import get_existing_post_urls

    conn = get_connection()
    urls = get_existing_post_urls(conn)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

import sqlite_vec

from harvester.config import settings


def get_connection(db_path: Optional[Path | str] = None) -> sqlite3.Connection:
    """Open the harvest database with ``sqlite-vec`` loaded.

    Foreign keys are enforced (chunks cascade with their post) and the journal
    mode is WAL.

    Args:
        db_path: Database file, defaulting to ``settings.db_path``.  The parent
            directory is created on demand.  ``":memory:"`` opens a throwaway
            database (used by the tests).

    Returns:
        A connection whose rows are :class:`sqlite3.Row`.
    """
    path = db_path or settings.db_path
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.enable_load_extension(True)
    try:
        sqlite_vec.load(conn)
    finally:
        conn.enable_load_extension(False)

    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn
