"""Vector search over embedded chunks."""

from __future__ import annotations

import sqlite3
from typing import Optional

import sqlite_vec

from harvester.db.models import ChunkHit

# Extra KNN candidates fetched when a section filter will drop some of them.
_SECTION_OVERFETCH = 5


def search_chunks(
    conn: sqlite3.Connection,
    embedding: list[float],
    limit: int = 10,
    section: Optional[str] = None,
) -> list[ChunkHit]:
    """Return the *limit* chunks nearest to *embedding*, best match first.

    ``similarity`` is ``1 - cosine distance``.  With *section* set, the KNN
    scan over-fetches and the section filter is applied after the join.
    """
    k = limit * _SECTION_OVERFETCH if section else limit
    rows = conn.execute(
        """
        WITH knn AS (
            SELECT chunk_id, distance
            FROM   chunks_vec
            WHERE  embedding MATCH ?
              AND  k = ?
        )
        SELECT c.content, c.heading, p.title, p.url, p.section, knn.distance
        FROM   knn
        JOIN   chunks c ON c.id = knn.chunk_id
        JOIN   posts  p ON p.id = c.post_id
        WHERE  (? IS NULL OR p.section = ?)
        ORDER  BY knn.distance
        LIMIT  ?
        """,
        (sqlite_vec.serialize_float32(embedding), k, section, section, limit),
    ).fetchall()
    return [
        ChunkHit(
            content=r["content"],
            heading=r["heading"],
            similarity=1.0 - r["distance"],
            title=r["title"],
            url=r["url"],
            section=r["section"],
        )
        for r in rows
    ]
