"""Run orchestration: walks every section in order with a fresh backend each.

Usage::

    from harvester.crawler.run import run_harvest

    report = run_harvest(sections, backend_factory=..., sink=..., telemetry=...)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

import sentry_sdk

from harvester.crawler.adapter import ExtractionAdapter
from harvester.crawler.dedup import DedupSet
from harvester.crawler.errors import error_type_name
from harvester.crawler.interfaces import ExtractionBackend, RecordSink
from harvester.crawler.models import RunStatus, Section, SectionStatus
from harvester.crawler.report import RunAggregator, RunReport, create_run_id
from harvester.crawler.retry import RetryPolicy
from harvester.crawler.section import SectionCrawler
from harvester.telemetry import RunTelemetry

logger = logging.getLogger(__name__)


def _safe_call(label: str, slug: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except Exception as exc:  # noqa: BLE001 - backend introspection is best-effort
        logger.warning("Failed to read backend %s for section %s: %s", label, slug, exc)
        return None


def run_harvest(
    sections: list[Section],
    *,
    backend_factory: Callable[[Section], ExtractionBackend],
    sink: RecordSink,
    telemetry: RunTelemetry,
    existing_urls: Iterable[str] = (),
    max_pages: int = 10,
    retry_policy: RetryPolicy = RetryPolicy(),
    session_error_threshold: int = 3,
    run_id: Optional[str] = None,
    config: Optional[dict[str, Any]] = None,
    sleep: Callable[[float], None] = time.sleep,
    cancel: Optional[threading.Event] = None,
) -> RunReport:
    """Harvest *sections* sequentially and return the final report.

    Args:
        sections: Sections to crawl, in order.
        backend_factory: Builds one unstarted backend per section.
        sink: Receives every extracted post detail.
        telemetry: Receives metrics, debug payloads and report files.  Its
            ``run_id`` is used when *run_id* is omitted.
        existing_urls: URLs already stored; they seed the dedup set so a
            re-run skips them.
        max_pages: Upper bound on listing pages per section.
        retry_policy: Detail-extraction retry policy.
        session_error_threshold: Consecutive escalated session errors that
            exhaust a section's backend.
        run_id: Explicit run id (defaults to the telemetry's).
        config: Extra values recorded in the report's ``config`` block.
        sleep: Backoff sleep, injectable for tests.
        cancel: Optional event; once set, no new page or URL is started.

    Returns:
        The finalized :class:`~harvester.crawler.report.RunReport`.

    Raises:
        Exception: Anything escaping the per-section scope is re-raised after
            the run has been marked ``run-aborted`` and the reports written.
    """
    run_id = run_id or telemetry.run_id or create_run_id(max_pages)
    run_config = {
        "maxPagesPerSection": max_pages,
        "detailMaxAttempts": retry_policy.max_attempts,
        "sessionErrorThreshold": session_error_threshold,
        **(config or {}),
    }
    aggregator = RunAggregator(run_id, run_config)
    aggregator.register_sections(sections)
    report = aggregator.report

    telemetry.append_run_log(report, RunStatus.STARTED.value)

    seen = DedupSet(existing_urls)
    logger.info("Loaded %d existing post URLs; these will be skipped.", len(seen))

    metrics_by_section: dict[str, Any] = {}
    history_by_section: dict[str, Any] = {}
    status = RunStatus.ABORTED
    total_saved = 0

    try:
        for section in sections:
            if cancel is not None and cancel.is_set():
                logger.warning("Run cancelled; %s and later sections left pending.", section.slug)
                break

            logger.info("=== Harvesting section: %s ===", section.name)
            backend = backend_factory(section)
            try:
                total_saved += _crawl_section(
                    section, backend, aggregator, seen,
                    sink=sink, telemetry=telemetry, run_id=run_id, max_pages=max_pages,
                    retry_policy=retry_policy,
                    session_error_threshold=session_error_threshold,
                    sleep=sleep, cancel=cancel,
                )
            finally:
                metrics_by_section[section.slug] = _safe_call("metrics", section.slug, backend.metrics)
                history_by_section[section.slug] = _safe_call("history", section.slug, backend.history)
                try:
                    backend.close()
                except Exception as exc:  # noqa: BLE001 - close errors are logged only
                    logger.warning("Failed to close backend for section %s: %s", section.slug, exc)

            logger.info(aggregator.section_summary_line(section.slug))
            telemetry.write_progress_snapshot(report)
            telemetry.append_run_log(
                report, report.section_status[section.slug].value, section=section.slug
            )

        status = RunStatus.ABORTED if cancel is not None and cancel.is_set() else RunStatus.COMPLETE
    except Exception as exc:
        logger.exception("Fatal error during harvest run %s", run_id)
        sentry_sdk.capture_exception(exc)
        raise
    finally:
        aggregator.finalize(status)
        logger.info(aggregator.run_summary_line())
        telemetry.write_final_summary(report)
        telemetry.append_run_log(report, status.value)
        telemetry.write_backend_artifacts(metrics_by_section, history_by_section)
        logger.info("Harvest finished. Total new posts saved: %d", total_saved)

    return report


def _crawl_section(
    section: Section,
    backend: ExtractionBackend,
    aggregator: RunAggregator,
    seen: DedupSet,
    *,
    sink: RecordSink,
    telemetry: RunTelemetry,
    run_id: str,
    max_pages: int,
    retry_policy: RetryPolicy,
    session_error_threshold: int,
    sleep: Callable[[float], None],
    cancel: Optional[threading.Event],
) -> int:
    """Crawl one section; return the number of saved posts.

    Failures here never leave the section scope: a backend that cannot start
    exhausts the section, anything else aborts it.
    """
    try:
        backend.start()
    except Exception as exc:  # noqa: BLE001 - a failed start only affects this section
        logger.error("Failed to start backend for section %s: %s", section.slug, exc)
        aggregator.record_error(error_type_name(exc))
        aggregator.section_finished(section.slug, SectionStatus.BACKEND_EXHAUSTED)
        return 0

    aggregator.backend_session(section.slug, backend.session_id)
    logger.info("Backend session for %s: %s", section.slug, backend.session_id)

    crawler = SectionCrawler(
        ExtractionAdapter(backend, telemetry, run_id),
        sink,
        aggregator,
        max_pages=max_pages,
        retry_policy=retry_policy,
        session_error_threshold=session_error_threshold,
        sleep=sleep,
        cancel=cancel,
    )
    try:
        outcome = crawler.crawl(section, seen)
    except Exception as exc:  # noqa: BLE001 - one broken section must not end the run
        logger.exception("Error while harvesting section %s", section.name)
        sentry_sdk.capture_exception(exc)
        aggregator.record_error(error_type_name(exc))
        aggregator.section_finished(section.slug, SectionStatus.ERROR_ABORTED)
        return 0
    return outcome.saved
