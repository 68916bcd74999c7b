"""CRUD operations for the ``posts`` table."""

from __future__ import annotations

import json
import sqlite3
from time import time
from typing import Optional

from harvester.crawler.models import PostDetail
from harvester.db.models import PostRecord


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_post(row: sqlite3.Row) -> PostRecord:
    return PostRecord(
        id=row["id"],
        url=row["url"],
        slug=row["slug"],
        title=row["title"],
        date_published=row["date_published"],
        section=row["section"],
        categories=json.loads(row["categories"] or "[]"),
        tags=json.loads(row["tags"] or "[]"),
        markdown=row["markdown"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


_UPSERT_SQL = """
    INSERT INTO posts (url, slug, title, date_published, section,
                       categories, tags, markdown, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(url) DO UPDATE SET
        slug           = excluded.slug,
        title          = excluded.title,
        date_published = excluded.date_published,
        section        = excluded.section,
        categories     = excluded.categories,
        tags           = excluded.tags,
        markdown       = excluded.markdown,
        updated_at     = excluded.updated_at
    WHERE posts.slug           IS NOT excluded.slug
       OR posts.title          IS NOT excluded.title
       OR posts.date_published IS NOT excluded.date_published
       OR posts.section        IS NOT excluded.section
       OR posts.categories     IS NOT excluded.categories
       OR posts.tags           IS NOT excluded.tags
       OR posts.markdown       IS NOT excluded.markdown
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def upsert_post(conn: sqlite3.Connection, detail: PostDetail) -> PostRecord:
    """Insert *detail* or update the row with the same URL.

    Idempotent: upserting an identical record twice leaves the row untouched,
    ``updated_at`` included.

    Returns:
        The stored :class:`~harvester.db.models.PostRecord`.
    """
    now = int(time())
    with conn:
        conn.execute(
            _UPSERT_SQL,
            (
                detail.url,
                detail.slug,
                detail.title,
                detail.date,
                detail.section,
                json.dumps(list(detail.categories)),
                json.dumps(list(detail.tags)),
                detail.markdown,
                now,
                now,
            ),
        )
    return get_post(conn, detail.url)  # type: ignore[return-value]


def get_post(conn: sqlite3.Connection, url: str) -> Optional[PostRecord]:
    """Fetch a post by URL.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM posts WHERE url = ?", (url,)).fetchone()
    return _row_to_post(row) if row else None


def list_posts(
    conn: sqlite3.Connection,
    section: Optional[str] = None,
) -> list[PostRecord]:
    """Return all posts, optionally filtered by section, oldest first."""
    if section:
        rows = conn.execute(
            "SELECT * FROM posts WHERE section = ? ORDER BY id", (section,)
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM posts ORDER BY id").fetchall()
    return [_row_to_post(r) for r in rows]


def get_existing_post_urls(
    conn: sqlite3.Connection, section: Optional[str] = None
) -> set[str]:
    """Return the URLs already stored, used to seed a run's dedup set."""
    if section:
        rows = conn.execute("SELECT url FROM posts WHERE section = ?", (section,))
    else:
        rows = conn.execute("SELECT url FROM posts")
    return {r["url"] for r in rows}


def count_posts(conn: sqlite3.Connection) -> dict[str, int]:
    """Return ``{section: count}`` for every section with at least one post."""
    rows = conn.execute(
        "SELECT section, COUNT(*) AS n FROM posts GROUP BY section ORDER BY section"
    ).fetchall()
    return {r["section"]: r["n"] for r in rows}
