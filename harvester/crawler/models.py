"""Data models for the harvest pipeline.

Two families live here:

* Frozen dataclasses for the typed entities the crawler works with once a
  payload has crossed the normalizer boundary.
* Pydantic models describing the shapes the extraction backend is *asked* to
  return.  Field names are the camelCase keys used in the instructions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Typed entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Section:
    """A top-level content partition with its own listing URL."""

    name: str
    slug: str
    base_url: str


@dataclass(frozen=True)
class PageTarget:
    """An absolute listing-page URL and its 1-based position in the section."""

    url: str
    number: int


@dataclass(frozen=True)
class PostSummary:
    """One entry discovered on a listing page."""

    url: str
    title: str
    date: Optional[str] = None
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ListingPage:
    """Everything the crawler needs from one listing page."""

    summaries: tuple[PostSummary, ...] = ()
    next_hint: Optional[str] = None


@dataclass(frozen=True)
class PostDetail:
    """The canonical unit of output handed to record sinks."""

    slug: str
    title: str
    url: str
    date: Optional[str]
    section: str
    categories: tuple[str, ...] = field(default_factory=tuple)
    tags: tuple[str, ...] = field(default_factory=tuple)
    markdown: str = ""


class SectionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    BACKEND_EXHAUSTED = "backend-exhausted"
    ERROR_ABORTED = "error-aborted"


class RunStatus(str, Enum):
    STARTED = "run-start"
    COMPLETE = "run-complete"
    ABORTED = "run-aborted"


# ---------------------------------------------------------------------------
# Expected backend shapes
# ---------------------------------------------------------------------------

class PostSummarySchema(BaseModel):
    url: str
    title: str
    date: Optional[str] = None
    categories: Optional[list[str]] = None
    tags: Optional[list[str]] = None


class ListingPageSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    posts: list[PostSummarySchema]
    # Any string (absolute or relative) or null; checked by the cursor.
    next_page_url: Optional[str] = Field(default=None, alias="nextPageUrl")


class PostDetailSchema(BaseModel):
    slug: str
    title: str
    url: str
    date: Optional[str] = None
    section: str
    categories: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    markdown: str
