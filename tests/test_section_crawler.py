"""Tests for the section crawl loop, including the two end-to-end scenarios."""

from __future__ import annotations

import threading

from conftest import DIET, FakeBackend, ListSink, RecordingTelemetry, detail_payload

from harvester.crawler.adapter import ExtractionAdapter
from harvester.crawler.dedup import DedupSet
from harvester.crawler.errors import PermanentExtractionError, TransientBackendError
from harvester.crawler.models import PostDetailSchema, SectionStatus
from harvester.crawler.report import RunAggregator
from harvester.crawler.retry import RetryPolicy
from harvester.crawler.section import SectionCrawler

BASE = DIET.base_url
PAGE2 = BASE + "page/2/"
OLD = "https://blog.example.com/old-post/"
NEW = "https://blog.example.com/new-post/"


def _crawler(backend, sink=None, *, max_pages=10, sleeps=None, cancel=None, threshold=3):
    aggregator = RunAggregator("run-1", {})
    aggregator.register_sections([DIET])
    crawler = SectionCrawler(
        ExtractionAdapter(backend, RecordingTelemetry(), "run-1"),
        sink if sink is not None else ListSink(),
        aggregator,
        max_pages=max_pages,
        retry_policy=RetryPolicy(max_attempts=3, backoff_unit=1.0),
        session_error_threshold=threshold,
        sleep=(sleeps.append if sleeps is not None else lambda _s: None),
        cancel=cancel,
    )
    return crawler, aggregator


def _listing(*urls: str, next_url=None) -> dict:
    return {"posts": [{"url": u, "title": u} for u in urls], "nextPageUrl": next_url}


class TestEndToEnd:
    def test_dedup_and_empty_second_page(self) -> None:
        backend = FakeBackend({
            BASE: [_listing(OLD, "/new-post/", next_url=PAGE2)],
            PAGE2: [_listing()],
            NEW: [detail_payload(NEW)],
        })
        sink = ListSink()
        crawler, aggregator = _crawler(backend, sink, max_pages=2)

        outcome = crawler.crawl(DIET, DedupSet([OLD]))

        assert backend.calls_with(PostDetailSchema) == [NEW]
        assert outcome.status is SectionStatus.COMPLETE
        assert outcome.pages_visited == 2
        assert outcome.saved == 1
        assert [r.url for r in sink.records] == [NEW]
        assert aggregator.report.section_status["dr-diet"] is SectionStatus.COMPLETE
        assert aggregator.report.sections["dr-diet"].pages_visited == 2

    def test_third_consecutive_session_failure_exhausts_section(self) -> None:
        urls = [f"https://blog.example.com/p{i}/" for i in range(4)]
        gone = TransientBackendError("Session has completed or timed out")
        backend = FakeBackend({
            BASE: [_listing(*urls, next_url=PAGE2)],
            urls[0]: [gone],
            urls[1]: [gone],
            urls[2]: [gone],
            urls[3]: [detail_payload(urls[3])],
        })
        sleeps: list[float] = []
        crawler, aggregator = _crawler(backend, sleeps=sleeps)

        outcome = crawler.crawl(DIET, DedupSet())

        assert outcome.status is SectionStatus.BACKEND_EXHAUSTED
        assert outcome.saved == 0
        assert urls[3] not in backend.calls_with(PostDetailSchema)
        assert len(backend.calls_with(PostDetailSchema)) == 9
        assert sleeps == [1.0, 2.0] * 3
        assert outcome.pages_visited == 1
        assert aggregator.report.sections["dr-diet"].details_failed == 3
        assert aggregator.report.errors["TransientBackendError"] == 9


class TestRetries:
    def test_recovers_after_transient_error(self) -> None:
        backend = FakeBackend({
            BASE: [_listing(NEW)],
            NEW: [TransientBackendError("gone"), detail_payload(NEW)],
        })
        sleeps: list[float] = []
        crawler, _ = _crawler(backend, sleeps=sleeps)
        outcome = crawler.crawl(DIET, DedupSet())
        assert outcome.saved == 1
        assert sleeps == [1.0]

    def test_permanent_error_not_retried(self) -> None:
        backend = FakeBackend({
            BASE: [_listing(NEW)],
            NEW: [PermanentExtractionError("nope")],
        })
        crawler, aggregator = _crawler(backend)
        outcome = crawler.crawl(DIET, DedupSet())
        assert backend.calls_with(PostDetailSchema) == [NEW]
        assert outcome.status is SectionStatus.COMPLETE
        assert aggregator.report.sections["dr-diet"].details_failed == 1

    def test_success_resets_consecutive_failures(self) -> None:
        urls = [f"https://blog.example.com/p{i}/" for i in range(4)]
        gone = TransientBackendError("gone")
        backend = FakeBackend({
            BASE: [_listing(*urls)],
            urls[0]: [gone],
            urls[1]: [gone],
            urls[2]: [detail_payload(urls[2])],
            urls[3]: [gone],
        })
        crawler, _ = _crawler(backend)
        outcome = crawler.crawl(DIET, DedupSet())
        assert outcome.status is SectionStatus.COMPLETE
        assert outcome.saved == 1


class TestListingFailures:
    def test_session_error_on_listing_exhausts(self) -> None:
        backend = FakeBackend({BASE: [TransientBackendError("gone")]})
        crawler, _ = _crawler(backend)
        assert crawler.crawl(DIET, DedupSet()).status is SectionStatus.BACKEND_EXHAUSTED

    def test_other_error_on_listing_aborts(self) -> None:
        backend = FakeBackend({BASE: [PermanentExtractionError("bad page")]})
        crawler, _ = _crawler(backend)
        assert crawler.crawl(DIET, DedupSet()).status is SectionStatus.ERROR_ABORTED


class TestPageHandling:
    def test_invalid_urls_skipped(self) -> None:
        backend = FakeBackend({
            BASE: [_listing("0-346", "12", NEW)],
            NEW: [detail_payload(NEW)],
        })
        crawler, _ = _crawler(backend)
        outcome = crawler.crawl(DIET, DedupSet())
        assert backend.calls_with(PostDetailSchema) == [NEW]
        assert outcome.saved == 1

    def test_max_pages_respected(self) -> None:
        backend = FakeBackend({
            BASE: [_listing(OLD)],
            PAGE2: [_listing(OLD)],
            BASE + "page/3/": [_listing(OLD)],
        })
        crawler, _ = _crawler(backend, max_pages=2)
        outcome = crawler.crawl(DIET, DedupSet([OLD]))
        assert outcome.pages_visited == 2
        assert outcome.status is SectionStatus.COMPLETE

    def test_element_reference_hint_uses_sequential_fallback(self) -> None:
        backend = FakeBackend({BASE: [_listing(OLD, next_url="0-35378")]})
        crawler, _ = _crawler(backend, max_pages=2)
        outcome = crawler.crawl(DIET, DedupSet([OLD]))
        assert PAGE2 in [url for url, _ in backend.calls]
        assert outcome.pages_visited == 2

    def test_date_normalized_before_sink(self) -> None:
        backend = FakeBackend({BASE: [_listing(NEW)], NEW: [detail_payload(NEW)]})
        sink = ListSink()
        crawler, _ = _crawler(backend, sink)
        crawler.crawl(DIET, DedupSet())
        assert sink.records[0].date == "2021-03-04"

    def test_unparseable_date_kept_raw(self) -> None:
        backend = FakeBackend({
            BASE: [_listing(NEW)],
            NEW: [detail_payload(NEW, date="sometime in spring")],
        })
        sink = ListSink()
        crawler, _ = _crawler(backend, sink)
        crawler.crawl(DIET, DedupSet())
        assert sink.records[0].date == "sometime in spring"

    def test_sink_failure_fails_only_that_item(self) -> None:
        other = "https://blog.example.com/other/"

        class FlakySink(ListSink):
            def accept(self, detail) -> None:
                if detail.url == NEW:
                    raise OSError("disk full")
                super().accept(detail)

        backend = FakeBackend({
            BASE: [_listing(NEW, other)],
            NEW: [detail_payload(NEW)],
            other: [detail_payload(other)],
        })
        sink = FlakySink()
        crawler, aggregator = _crawler(backend, sink)
        outcome = crawler.crawl(DIET, DedupSet())
        assert [r.url for r in sink.records] == [other]
        assert outcome.saved == 1
        assert aggregator.report.sections["dr-diet"].details_failed == 1

    def test_repaired_details_counted(self) -> None:
        backend = FakeBackend({BASE: [_listing(NEW)], NEW: [{"title": "New"}]})
        crawler, aggregator = _crawler(backend)
        crawler.crawl(DIET, DedupSet())
        assert aggregator.report.sections["dr-diet"].details_repaired == 1

    def test_records_forwarded_in_discovery_order(self) -> None:
        urls = [f"https://blog.example.com/p{i}/" for i in range(3)]
        backend = FakeBackend({BASE: [_listing(*urls)], **{u: [detail_payload(u)] for u in urls}})
        sink = ListSink()
        crawler, _ = _crawler(backend, sink)
        crawler.crawl(DIET, DedupSet())
        assert [r.url for r in sink.records] == urls


class TestCancellation:
    def test_cancel_before_start(self) -> None:
        cancel = threading.Event()
        cancel.set()
        backend = FakeBackend({BASE: [_listing(NEW)]})
        crawler, _ = _crawler(backend, cancel=cancel)
        outcome = crawler.crawl(DIET, DedupSet())
        assert outcome.status is SectionStatus.BACKEND_EXHAUSTED
        assert backend.calls == []

    def test_cancel_mid_page_skips_remaining_urls(self) -> None:
        cancel = threading.Event()
        first, second = NEW, "https://blog.example.com/second/"

        class CancellingSink(ListSink):
            def accept(self, detail) -> None:
                super().accept(detail)
                cancel.set()

        backend = FakeBackend({
            BASE: [_listing(first, second)],
            first: [detail_payload(first)],
            second: [detail_payload(second)],
        })
        sink = CancellingSink()
        crawler, _ = _crawler(backend, sink, cancel=cancel)
        outcome = crawler.crawl(DIET, DedupSet())
        assert [r.url for r in sink.records] == [first]
        assert outcome.status is SectionStatus.BACKEND_EXHAUSTED
