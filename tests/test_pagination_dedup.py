"""Tests for the pagination cursor and the run-scoped dedup set."""

from __future__ import annotations

import threading

from conftest import DIET

from harvester.crawler.dedup import DedupSet
from harvester.crawler.models import PageTarget
from harvester.crawler.pagination import PaginationCursor


class TestPaginationCursor:
    cursor = PaginationCursor(DIET)

    def test_first_page(self) -> None:
        assert self.cursor.first() == PageTarget(DIET.base_url, 1)

    def test_sequential_url(self) -> None:
        assert self.cursor.sequential_url(1) == DIET.base_url
        assert self.cursor.sequential_url(3) == DIET.base_url + "page/3/"

    def test_valid_hint_wins(self) -> None:
        target = self.cursor.next(self.cursor.first(), "/category/diet/page/2/", False)
        assert target == PageTarget("https://blog.example.com/category/diet/page/2/", 2)

    def test_element_reference_hint_falls_back_when_results(self) -> None:
        target = self.cursor.next(PageTarget(DIET.base_url + "page/2/", 2), "0-35378", True)
        assert target == PageTarget(DIET.base_url + "page/3/", 3)

    def test_protocol_relative_hint_stays_on_section_host(self) -> None:
        nxt = self.cursor.next(PageTarget(DIET.base_url, 1), "//other.example.org/page/2/", True)
        assert nxt == PageTarget(DIET.base_url + "page/2/", 2)

    def test_missing_hint_falls_back_when_results(self) -> None:
        target = self.cursor.next(self.cursor.first(), None, True)
        assert target == PageTarget(DIET.base_url + "page/2/", 2)

    def test_done_when_no_hint_and_no_results(self) -> None:
        assert self.cursor.next(self.cursor.first(), None, False) is None
        assert self.cursor.next(self.cursor.first(), "12", False) is None

    def test_number_always_increments(self) -> None:
        target = self.cursor.next(PageTarget(DIET.base_url, 4), DIET.base_url + "page/9/", True)
        assert target is not None and target.number == 5


class TestDedupSet:
    def test_claim_once(self) -> None:
        seen = DedupSet()
        assert seen.claim("https://a/")
        assert not seen.claim("https://a/")
        assert "https://a/" in seen
        assert len(seen) == 1

    def test_seeded_urls_are_taken(self) -> None:
        seen = DedupSet(["https://a/"])
        assert not seen.claim("https://a/")

    def test_concurrent_claims_grant_exactly_one(self) -> None:
        seen = DedupSet()
        winners: list[bool] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            winners.append(seen.claim("https://contended/"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert winners.count(True) == 1
