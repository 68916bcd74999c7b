"""Database initialisation and migration helpers.

``init_db(conn)`` is idempotent and safe to call on an existing database.
``migrate(conn)`` runs incremental schema changes tracked in a version table.
"""

from __future__ import annotations

import sqlite3

from harvester.config import settings


# Each entry is ``(version, sql)``; append new ones, never edit old ones.
MIGRATIONS: list[tuple[int, str]] = [
    (1, "CREATE INDEX IF NOT EXISTS idx_posts_date ON posts(date_published)"),
]


def _read_schema() -> str:
    """Load schema.sql and inject the embedding dimension."""
    template = settings.schema_path.read_text(encoding="utf-8")
    return template.replace("{embedding_dim}", str(settings.embedding_dim))


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables, indexes, triggers and virtual tables, then migrate.

    Args:
        conn: An open connection with sqlite-vec already loaded.
    """
    # executescript() copes with the BEGIN...END bodies of the triggers.
    conn.executescript(_read_schema())
    _ensure_version_table(conn)
    migrate(conn)


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (unixepoch())
            )
            """
        )


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection) -> None:
    """Apply pending entries of :data:`MIGRATIONS` in version order."""
    applied = current_version(conn)
    for version, sql in MIGRATIONS:
        if version > applied:
            with conn:
                conn.execute(sql)
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)", (version,)
                )
