"""Dataclass models representing DB rows.

Plain Python objects, not ORM models.  The DB layer serialises to and from
these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PostRecord:
    id: int
    url: str
    slug: str
    title: str
    date_published: Optional[str]
    section: str
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    markdown: str = ""
    created_at: int = 0
    updated_at: int = 0


@dataclass
class Chunk:
    id: int
    post_id: int
    chunk_index: int
    heading: Optional[str]
    content: str
    token_count: int
    embedded: bool = False


@dataclass
class ChunkHit:
    """One vector-search result."""

    content: str
    heading: Optional[str]
    similarity: float
    title: str
    url: str
    section: str
