"""Operations on the ``chunks`` and ``chunks_vec`` tables."""

from __future__ import annotations

import sqlite3
from typing import Iterable, Optional

import sqlite_vec

from harvester.db.models import Chunk, PostRecord
from harvester.db.posts import _row_to_post


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        post_id=row["post_id"],
        chunk_index=row["chunk_index"],
        heading=row["heading"],
        content=row["content"],
        token_count=row["token_count"],
        embedded=bool(row["embedded"]),
    )


def posts_needing_chunks(conn: sqlite3.Connection) -> list[PostRecord]:
    """Posts with a body but no chunks (new, or re-chunk after an edit)."""
    rows = conn.execute(
        """
        SELECT p.* FROM posts p
        WHERE  p.markdown <> ''
          AND  NOT EXISTS (SELECT 1 FROM chunks c WHERE c.post_id = p.id)
        ORDER  BY p.id
        """
    ).fetchall()
    return [_row_to_post(r) for r in rows]


def insert_chunks(
    conn: sqlite3.Connection,
    post_id: int,
    chunks: Iterable[tuple[Optional[str], str, int]],
) -> int:
    """Insert ``(heading, content, token_count)`` tuples for *post_id*.

    Returns:
        The number of rows inserted.
    """
    rows = [
        (post_id, idx, heading, content, tokens)
        for idx, (heading, content, tokens) in enumerate(chunks)
    ]
    with conn:
        conn.executemany(
            """
            INSERT INTO chunks (post_id, chunk_index, heading, content, token_count)
            VALUES (?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def chunks_needing_embeddings(conn: sqlite3.Connection, limit: int = 100) -> list[Chunk]:
    rows = conn.execute(
        "SELECT * FROM chunks WHERE embedded = 0 ORDER BY id LIMIT ?", (limit,)
    ).fetchall()
    return [_row_to_chunk(r) for r in rows]


def store_embedding(
    conn: sqlite3.Connection, chunk_id: int, embedding: list[float]
) -> None:
    """Write the vector for *chunk_id* and flag the chunk as embedded."""
    blob = sqlite_vec.serialize_float32(embedding)
    with conn:
        # vec0 has no OR REPLACE, so clear any stale vector first.
        conn.execute("DELETE FROM chunks_vec WHERE chunk_id = ?", (chunk_id,))
        conn.execute(
            "INSERT INTO chunks_vec(chunk_id, embedding) VALUES (?, ?)",
            (chunk_id, blob),
        )
        conn.execute("UPDATE chunks SET embedded = 1 WHERE id = ?", (chunk_id,))


def chunk_counts(conn: sqlite3.Connection) -> dict[str, int]:
    row = conn.execute(
        """
        SELECT COUNT(*)                               AS total,
               COALESCE(SUM(embedded), 0)             AS with_embeddings,
               COUNT(DISTINCT post_id)                AS posts
        FROM   chunks
        """
    ).fetchone()
    total = row["total"]
    embedded = row["with_embeddings"]
    return {
        "total_chunks": total,
        "with_embeddings": embedded,
        "without_embeddings": total - embedded,
        "posts_chunked": row["posts"],
    }
