"""Chunk and embed stored posts."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from harvester.config import settings
from harvester.db import chunks as chunk_db
from harvester.rag.chunker import chunk_markdown
from harvester.rag.embedder import embed_texts

logger = logging.getLogger(__name__)


@dataclass
class ChunkingResult:
    posts_processed: int
    chunks_created: int


@dataclass
class EmbeddingResult:
    chunks_processed: int
    tokens_estimated: int


def chunk_all_posts(conn: sqlite3.Connection) -> ChunkingResult:
    """Chunk every post that has a body but no chunks yet."""
    posts = chunk_db.posts_needing_chunks(conn)
    logger.info("Found %d posts needing chunks", len(posts))

    created = 0
    for post in posts:
        pieces = chunk_markdown(
            post.markdown,
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
        )
        created += chunk_db.insert_chunks(
            conn, post.id, ((c.heading, c.content, c.token_count) for c in pieces)
        )
        logger.info("  %s -> %d chunks", post.title[:50], len(pieces))
    return ChunkingResult(posts_processed=len(posts), chunks_created=created)


def embed_all_chunks(conn: sqlite3.Connection, batch_size: int = 100) -> EmbeddingResult:
    """Embed pending chunks batch by batch until none are left."""
    processed = 0
    tokens = 0
    while True:
        batch = chunk_db.chunks_needing_embeddings(conn, limit=batch_size)
        if not batch:
            break
        vectors = embed_texts([c.content for c in batch])
        if len(vectors) != len(batch):
            raise ValueError(
                f"Embedder returned {len(vectors)} vectors for {len(batch)} chunks"
            )
        for chunk, vector in zip(batch, vectors):
            chunk_db.store_embedding(conn, chunk.id, vector)
            tokens += chunk.token_count
        processed += len(batch)
        logger.info("  Embedded %d chunks so far", processed)
    return EmbeddingResult(chunks_processed=processed, tokens_estimated=tokens)


def chunk_stats(conn: sqlite3.Connection) -> dict[str, int]:
    return chunk_db.chunk_counts(conn)
