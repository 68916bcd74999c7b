"""Section Crawler: drives one section's pagination loop.

States::

    pending -> running -> complete
                       -> backend-exhausted   (health monitor tripped, or cancelled)
                       -> error-aborted       (listing page failed for a non-session reason)

For each listing page the crawler extracts summaries, claims every new valid
detail URL in the shared :class:`~harvester.crawler.dedup.DedupSet`, extracts
the detail with a bounded retry loop, and forwards the record to the sink in
discovery order.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from harvester.crawler.adapter import ExtractionAdapter, Failed, Repaired
from harvester.crawler.dates import normalize_date
from harvester.crawler.dedup import DedupSet
from harvester.crawler.errors import error_type_name
from harvester.crawler.health import Outcome, SessionHealthMonitor
from harvester.crawler.identifiers import absolutize, is_usable_target
from harvester.crawler.interfaces import RecordSink
from harvester.crawler.models import (
    PageTarget,
    PostDetail,
    PostSummary,
    Section,
    SectionStatus,
)
from harvester.crawler.pagination import PaginationCursor
from harvester.crawler.report import RunAggregator
from harvester.crawler.retry import (
    AttemptState,
    ErrorKind,
    Escalate,
    Retry,
    RetryPolicy,
    next_action,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionOutcome:
    status: SectionStatus
    pages_visited: int
    saved: int


class SectionCrawler:
    def __init__(
        self,
        adapter: ExtractionAdapter,
        sink: RecordSink,
        aggregator: RunAggregator,
        *,
        max_pages: int,
        retry_policy: RetryPolicy = RetryPolicy(),
        session_error_threshold: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.adapter = adapter
        self.sink = sink
        self.aggregator = aggregator
        self.max_pages = max_pages
        self.retry_policy = retry_policy
        self.session_error_threshold = session_error_threshold
        self._sleep = sleep
        self._cancel = cancel

    def _cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    # ------------------------------------------------------------------
    # Pagination loop
    # ------------------------------------------------------------------
    def crawl(self, section: Section, seen: DedupSet) -> SectionOutcome:
        """Harvest *section*, claiming URLs in the run-wide *seen* set."""
        monitor = SessionHealthMonitor(self.session_error_threshold)
        cursor = PaginationCursor(section)
        target: Optional[PageTarget] = cursor.first()
        status = SectionStatus.RUNNING
        pages_visited = 0
        saved = 0

        self.aggregator.section_started(section.slug)

        while target is not None and target.number <= self.max_pages:
            if self._cancelled():
                logger.warning("[%s] Cancelled before page %d", section.slug, target.number)
                status = SectionStatus.BACKEND_EXHAUSTED
                break

            logger.info("[%s] Page %d -> %s", section.name, target.number, target.url)
            pages_visited += 1
            self.aggregator.page_visited(section.slug)

            result = self.adapter.extract_listing(section, target)
            if isinstance(result, Failed):
                self.aggregator.record_error(result.error_type)
                if result.session_error:
                    logger.error(
                        "[%s] Session error on listing page %s; marking backend exhausted.",
                        section.slug, target.url,
                    )
                    monitor.trip()
                    status = SectionStatus.BACKEND_EXHAUSTED
                else:
                    logger.error(
                        "[%s] Listing page %s failed: %s", section.slug, target.url, result.reason
                    )
                    status = SectionStatus.ERROR_ABORTED
                break

            listing = result.value
            logger.info("  Extracted %d post summaries", len(listing.summaries))
            self.aggregator.summaries_discovered(section.slug, len(listing.summaries))

            saved += self._process_page(section, listing.summaries, seen, monitor)

            if not monitor.is_healthy() or self._cancelled():
                status = SectionStatus.BACKEND_EXHAUSTED
                break

            target = cursor.next(target, listing.next_hint, bool(listing.summaries))

        if status is SectionStatus.RUNNING:
            status = SectionStatus.COMPLETE
        self.aggregator.section_finished(section.slug, status)
        logger.info("[%s] Finished with status %s; saved %d", section.slug, status.value, saved)
        return SectionOutcome(status=status, pages_visited=pages_visited, saved=saved)

    # ------------------------------------------------------------------
    # One listing page
    # ------------------------------------------------------------------
    def _process_page(
        self,
        section: Section,
        summaries: tuple[PostSummary, ...],
        seen: DedupSet,
        monitor: SessionHealthMonitor,
    ) -> int:
        saved = 0
        invalid = 0

        for summary in summaries:
            if not monitor.is_healthy():
                logger.warning(
                    "    Session unhealthy; skipping remaining posts in section %s.", section.slug
                )
                break
            if self._cancelled():
                logger.warning("    Cancelled; skipping remaining posts in section %s.", section.slug)
                break

            if not is_usable_target(summary.url):
                logger.warning("    Skipping invalid URL (likely element ID): %r", summary.url)
                invalid += 1
                continue

            url = absolutize(summary.url, section.base_url)
            if not seen.claim(url):
                logger.info("    Skipping already-seen post: %s", url)
                continue

            logger.info("    Processing post URL: %s", url)
            result = self._extract_with_retry(section, url, monitor)
            if result is None:
                self.aggregator.detail_failed(section.slug)
                continue

            if self._forward(section, result.value):
                saved += 1
                self.aggregator.detail_saved(section.slug, repaired=isinstance(result, Repaired))
            else:
                self.aggregator.detail_failed(section.slug)

        logger.info("  New posts this page: %d", saved)
        if invalid:
            logger.warning("  %d posts had invalid URLs (element IDs) and were skipped", invalid)
        return saved

    # ------------------------------------------------------------------
    # One detail URL
    # ------------------------------------------------------------------
    def _extract_with_retry(self, section: Section, url: str, monitor: SessionHealthMonitor):
        """Return a ``Valid``/``Repaired`` detail result, or ``None`` on failure."""
        state = AttemptState()
        while True:
            state = state.begin_attempt()
            logger.info(
                "    [Attempt %d/%d] Extracting post detail ...",
                state.attempt, self.retry_policy.max_attempts,
            )
            result = self.adapter.extract_detail(section, url)
            if not isinstance(result, Failed):
                monitor.record_outcome(Outcome.SUCCESS)
                return result

            self.aggregator.record_error(result.error_type)
            kind = ErrorKind.SESSION if result.session_error else ErrorKind.PERMANENT
            state = state.failed(kind)
            action = next_action(state, self.retry_policy)

            if isinstance(action, Retry):
                logger.info("    Session error detected, retrying in %.1fs ...", action.delay)
                self._sleep(action.delay)
                continue

            if isinstance(action, Escalate):
                monitor.record_outcome(Outcome.SESSION_ERROR)
                logger.error(
                    "    Session error persisted for %s after %d attempts; "
                    "consecutiveSessionErrors=%d",
                    url, state.attempt, monitor.consecutive_failures,
                )
                if not monitor.is_healthy():
                    logger.error(
                        "    %d consecutive session errors; bailing out of section %s.",
                        monitor.consecutive_failures, section.slug,
                    )
            else:
                monitor.record_outcome(Outcome.OTHER_ERROR)

            logger.error("    Giving up on post after %d attempt(s): %s", state.attempt, url)
            return None

    def _forward(self, section: Section, detail: PostDetail) -> bool:
        """Normalise the date and hand *detail* to the sink.  ``False`` on sink failure."""
        normalized = normalize_date(detail.date)
        if normalized is None and detail.date:
            logger.warning("    Using unnormalized date for %s: %r", detail.url, detail.date)
        record = replace(detail, date=normalized or detail.date)

        try:
            self.sink.accept(record)
        except Exception as exc:  # noqa: BLE001 - a sink failure only fails this item
            self.aggregator.record_error(error_type_name(exc))
            logger.error("    Failed to store %s: %s", record.url, exc)
            return False
        logger.info("    Saved: %s", record.url)
        return True
