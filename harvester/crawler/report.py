"""Run Aggregator: counters and statuses for observability.

The crawler writes to the aggregator but never reads from it.  Anything that
needs to make a decision keeps its own state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from harvester.crawler.models import RunStatus, Section, SectionStatus


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_run_id(max_pages_per_section: int, now: Optional[datetime] = None) -> str:
    """Return an id like ``20260118-093000-p10``."""
    now = now or datetime.now()
    return f"{now:%Y%m%d-%H%M%S}-p{max_pages_per_section}"


@dataclass
class SectionStats:
    pages_visited: int = 0
    summaries_discovered: int = 0
    details_saved: int = 0
    details_failed: int = 0
    details_repaired: int = 0


@dataclass
class RunTotals:
    sections_visited: int = 0
    pages_visited: int = 0
    summaries_discovered: int = 0
    details_saved: int = 0
    details_failed: int = 0
    details_repaired: int = 0


@dataclass
class RunReport:
    run_id: str
    started_at: str
    config: dict[str, Any]
    status: RunStatus = RunStatus.STARTED
    finished_at: Optional[str] = None
    backend_session_ids: dict[str, str] = field(default_factory=dict)
    totals: RunTotals = field(default_factory=RunTotals)
    sections: dict[str, SectionStats] = field(default_factory=dict)
    section_status: dict[str, SectionStatus] = field(default_factory=dict)
    errors: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["section_status"] = {k: v.value for k, v in self.section_status.items()}
        return data


class RunAggregator:
    """Owns the :class:`RunReport` for one run."""

    def __init__(self, run_id: str, config: dict[str, Any]) -> None:
        self.report = RunReport(run_id=run_id, started_at=_now_iso(), config=dict(config))

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------
    def register_sections(self, sections: list[Section]) -> None:
        for section in sections:
            self.report.sections.setdefault(section.slug, SectionStats())
            self.report.section_status.setdefault(section.slug, SectionStatus.PENDING)

    def _stats(self, slug: str) -> SectionStats:
        return self.report.sections.setdefault(slug, SectionStats())

    def section_started(self, slug: str) -> None:
        self._stats(slug)
        self.report.section_status[slug] = SectionStatus.RUNNING
        self.report.totals.sections_visited += 1

    def section_finished(self, slug: str, status: SectionStatus) -> None:
        self.report.section_status[slug] = status

    def backend_session(self, slug: str, session_id: Optional[str]) -> None:
        if session_id:
            self.report.backend_session_ids[slug] = session_id

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------
    def page_visited(self, slug: str) -> None:
        self._stats(slug).pages_visited += 1
        self.report.totals.pages_visited += 1

    def summaries_discovered(self, slug: str, count: int) -> None:
        self._stats(slug).summaries_discovered += count
        self.report.totals.summaries_discovered += count

    def detail_saved(self, slug: str, repaired: bool = False) -> None:
        stats = self._stats(slug)
        stats.details_saved += 1
        self.report.totals.details_saved += 1
        if repaired:
            stats.details_repaired += 1
            self.report.totals.details_repaired += 1

    def detail_failed(self, slug: str) -> None:
        self._stats(slug).details_failed += 1
        self.report.totals.details_failed += 1

    def record_error(self, error_type: str) -> None:
        self.report.errors[error_type] = self.report.errors.get(error_type, 0) + 1

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    def finalize(self, status: RunStatus) -> RunReport:
        self.report.status = status
        self.report.finished_at = _now_iso()
        return self.report

    def section_summary_line(self, slug: str) -> str:
        stats = self._stats(slug)
        return (
            f"SECTION_SUMMARY runId={self.report.run_id} section={slug} "
            f"pagesVisited={stats.pages_visited} "
            f"postsDiscovered={stats.summaries_discovered} "
            f"postsSaved={stats.details_saved} postsFailed={stats.details_failed}"
        )

    def run_summary_line(self) -> str:
        t = self.report.totals
        return (
            f"RUN_SUMMARY runId={self.report.run_id} status={self.report.status.value} "
            f"sectionsVisited={t.sections_visited} categoryPagesVisited={t.pages_visited} "
            f"postsDiscovered={t.summaries_discovered} postsSaved={t.details_saved} "
            f"postsFailed={t.details_failed}"
        )
