"""RAG commands: chunk, embed, inspect and search the harvested corpus."""

from __future__ import annotations

from typing import Optional

import typer

from harvester.db import get_connection, init_db
from harvester.rag.embedder import embed_text
from harvester.rag.indexer import chunk_all_posts, chunk_stats, embed_all_chunks
from harvester.rag.search import search_chunks

rag_app = typer.Typer(help="Chunking, embedding and semantic search.", no_args_is_help=True)


@rag_app.command("chunk")
def rag_chunk() -> None:
    """Chunk every stored post that has no chunks yet."""
    conn = get_connection()
    init_db(conn)
    try:
        result = chunk_all_posts(conn)
    finally:
        conn.close()
    typer.echo(
        f"[rag chunk] Processed {result.posts_processed} posts, "
        f"created {result.chunks_created} chunks."
    )


@rag_app.command("embed")
def rag_embed(
    batch_size: int = typer.Option(100, "--batch-size", min=1, help="Chunks per embedding request."),
) -> None:
    """Generate embeddings for every chunk that lacks one."""
    conn = get_connection()
    init_db(conn)
    try:
        result = embed_all_chunks(conn, batch_size=batch_size)
    except Exception as exc:  # noqa: BLE001 - provider failures end the command
        typer.echo(f"[rag embed] Error: {exc}")
        raise typer.Exit(1)
    finally:
        conn.close()
    typer.echo(
        f"[rag embed] Embedded {result.chunks_processed} chunks "
        f"(~{result.tokens_estimated} tokens)."
    )


@rag_app.command("stats")
def rag_stats() -> None:
    """Show chunking and embedding progress."""
    conn = get_connection()
    init_db(conn)
    try:
        stats = chunk_stats(conn)
    finally:
        conn.close()
    typer.echo(f"Total chunks:       {stats['total_chunks']}")
    typer.echo(f"With embeddings:    {stats['with_embeddings']}")
    typer.echo(f"Without embeddings: {stats['without_embeddings']}")
    typer.echo(f"Posts chunked:      {stats['posts_chunked']}")


@rag_app.command("search")
def rag_search(
    query: str = typer.Argument(..., help="Natural-language query."),
    limit: int = typer.Option(5, "--limit", min=1, help="Number of results."),
    section: Optional[str] = typer.Option(None, "--section", help="Restrict to one section slug."),
) -> None:
    """Semantic search over embedded chunks."""
    typer.echo(f"[rag search] Embedding query {query!r} …")
    embedding = embed_text(query)

    conn = get_connection()
    init_db(conn)
    try:
        hits = search_chunks(conn, embedding, limit=limit, section=section)
    finally:
        conn.close()

    if not hits:
        typer.echo("[rag search] No results.")
        return
    for i, hit in enumerate(hits, start=1):
        typer.echo(f"--- Result {i} ({hit.similarity * 100:.1f}% match) ---")
        typer.echo(f"Title: {hit.title}")
        typer.echo(f"URL: {hit.url}")
        if hit.heading:
            typer.echo(f"Heading: {hit.heading}")
        typer.echo("")
        typer.echo(hit.content[:500])
        typer.echo("")
