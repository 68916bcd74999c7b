"""Shared fixtures and hand-written fakes for the harvester tests."""

from __future__ import annotations

import sqlite3
from typing import Any, Generator, Optional

import pytest

from harvester.crawler.errors import PermanentExtractionError
from harvester.crawler.interfaces import ExtractMetric
from harvester.crawler.models import ListingPageSchema, PostDetail, Section
from harvester.db.connection import get_connection
from harvester.db.migrations import init_db

DIET = Section(name="Dr. Diet", slug="dr-diet", base_url="https://blog.example.com/category/diet/")
QUIET = Section(name="Dr. Quiet", slug="dr-quiet", base_url="https://blog.example.com/category/quiet/")


class FakeBackend:
    """Scripted extraction backend.

    ``responses`` maps a target URL to a list of payloads or exceptions.  Each
    call consumes the next entry; the last entry repeats forever.  Unscripted
    listing pages come back empty, unscripted detail pages fail permanently.
    """

    def __init__(
        self,
        responses: Optional[dict[str, list[Any]]] = None,
        start_error: Optional[Exception] = None,
        debug_payload: Any = None,
    ) -> None:
        self.responses = {url: list(items) for url, items in (responses or {}).items()}
        self.start_error = start_error
        self.debug_payload = debug_payload if debug_payload is not None else {"items": []}
        self.calls: list[tuple[str, Optional[type]]] = []
        self.session_id: Optional[str] = None
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        self.session_id = "fake-session"

    def extract(self, instruction: str, schema: Optional[type], target_url: str) -> Any:
        self.calls.append((target_url, schema))
        if schema is None:
            return self.debug_payload
        queue = self.responses.get(target_url)
        if not queue:
            if schema is ListingPageSchema:
                return {"posts": [], "nextPageUrl": None}
            raise PermanentExtractionError(f"no scripted response for {target_url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True

    def metrics(self) -> dict[str, Any]:
        return {"calls": len(self.calls)}

    def history(self) -> list[dict[str, Any]]:
        return [{"url": url} for url, _ in self.calls]

    def calls_with(self, schema: Optional[type]) -> list[str]:
        return [url for url, s in self.calls if s is schema]


class RecordingTelemetry:
    def __init__(self) -> None:
        self.metrics: list[ExtractMetric] = []
        self.debug_payloads: list[tuple[str, int, str, Any]] = []

    def emit_metric(self, metric: ExtractMetric) -> None:
        self.metrics.append(metric)

    def write_debug_payload(self, section: str, page_number: int, url: str, payload: Any) -> None:
        self.debug_payloads.append((section, page_number, url, payload))


class ListSink:
    def __init__(self) -> None:
        self.records: list[PostDetail] = []

    def accept(self, detail: PostDetail) -> None:
        self.records.append(detail)


def detail_payload(url: str, section: str = "dr-diet", **overrides: Any) -> dict[str, Any]:
    slug = url.rstrip("/").rsplit("/", 1)[-1]
    payload: dict[str, Any] = {
        "slug": slug,
        "title": slug.replace("-", " ").title(),
        "url": url,
        "date": "March 4, 2021",
        "section": section,
        "categories": ["Nutrition"],
        "tags": [],
        "markdown": f"# {slug}\n\nBody of {slug}.",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with sqlite-vec loaded and schema initialised."""
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()
