"""Record sinks: where extracted posts end up.

A sink's ``accept`` may raise; the section crawler counts that as a failure
of the one post and carries on.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from harvester.crawler.interfaces import RecordSink
from harvester.crawler.models import PostDetail
from harvester.db.posts import upsert_post
from harvester.rendering import write_post_markdown

logger = logging.getLogger(__name__)


class StoreSink:
    """Upserts each post into the ``posts`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def accept(self, detail: PostDetail) -> None:
        record = upsert_post(self.conn, detail)
        logger.debug("Stored post #%d: %s", record.id, record.url)


class MarkdownSink:
    """Writes each post as a markdown file under *output_root*."""

    def __init__(self, output_root: Path) -> None:
        self.output_root = Path(output_root)

    def accept(self, detail: PostDetail) -> None:
        path = write_post_markdown(detail, self.output_root)
        logger.debug("Wrote %s", path)


class CompositeSink:
    """Forwards to several sinks in order; the first failure propagates."""

    def __init__(self, *sinks: RecordSink) -> None:
        self.sinks = list(sinks)

    def accept(self, detail: PostDetail) -> None:
        for sink in self.sinks:
            sink.accept(detail)
