"""Text embedder for the RAG pipeline.

Embedding providers
-------------------
``ollama`` (default)
    Calls the local Ollama REST API at ``/api/embeddings``.
    Configure via ``OLLAMA_BASE_URL`` and ``OLLAMA_EMBED_MODEL``.

``openai``
    Calls the OpenAI embeddings API.  Requires ``OPENAI_API_KEY``.
    Configure via ``OPENAI_EMBED_MODEL``; ``EMBEDDING_DIM`` is sent as the
    requested dimension.

Set ``EMBEDDING_PROVIDER=openai`` in your ``.env`` to switch providers.
"""

from __future__ import annotations

import os

import httpx

from harvester.config import settings

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


def _openai_key() -> str:
    api_key = os.environ.get("OPENAI_API_KEY", "")
    if not api_key:
        raise EnvironmentError(
            "OPENAI_API_KEY environment variable is not set. "
            "Set it or switch to EMBEDDING_PROVIDER=ollama."
        )
    return api_key


def _embed_ollama(texts: list[str]) -> list[list[float]]:
    """Ollama embeds one prompt per request."""
    vectors: list[list[float]] = []
    with httpx.Client(timeout=60.0) as client:
        for text in texts:
            response = client.post(
                f"{settings.ollama_base_url}/api/embeddings",
                json={"model": settings.ollama_embed_model, "prompt": text},
            )
            response.raise_for_status()
            vectors.append(response.json()["embedding"])
    return vectors


def _embed_openai(texts: list[str]) -> list[list[float]]:
    with httpx.Client(timeout=60.0) as client:
        response = client.post(
            OPENAI_EMBEDDINGS_URL,
            headers={"Authorization": f"Bearer {_openai_key()}"},
            json={
                "model": settings.openai_embed_model,
                "input": texts,
                "dimensions": settings.embedding_dim,
            },
        )
        response.raise_for_status()
        data = sorted(response.json()["data"], key=lambda d: d["index"])
        return [d["embedding"] for d in data]


def embed_texts(texts: list[str]) -> list[list[float]]:
    """Return one embedding per input text, in order.

    Raises:
        httpx.HTTPStatusError: If the embedding API returns a non-2xx status.
        EnvironmentError: If ``OPENAI_API_KEY`` is missing for the OpenAI
            provider.
    """
    if not texts:
        return []
    if settings.embedding_provider == "openai":
        return _embed_openai(texts)
    return _embed_ollama(texts)


def embed_text(text: str) -> list[float]:
    """Return the embedding vector for a single *text* (e.g. a search query)."""
    return embed_texts([text])[0]
