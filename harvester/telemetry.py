"""Run telemetry: metrics, debug payloads and report files.

Every writer here is best-effort.  A failure is logged as a warning and never
propagated, so losing a report file can never change what gets harvested.

Layout under ``reports_dir``::

    runs.log                                 append-only JSONL, one line per checkpoint
    latest-summary.json                      copy of the most recent final summary
    summary/run-<id>.json                    final report
    summary/run-<id>-progress.json           snapshot after each section
    raw/metrics-<id>.jsonl                   one EXTRACT_METRIC per backend call
    raw/category-debug-<id>-<slug>-p<n>.json diagnostic payloads
    raw/backend-<id>.json                    backend metrics/history by section
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from harvester.crawler.interfaces import ExtractMetric
from harvester.crawler.report import RunReport

logger = logging.getLogger(__name__)


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def format_metric_line(metric: ExtractMetric) -> str:
    """Single grep-able ``EXTRACT_METRIC`` line for *metric*."""
    parts = [
        "EXTRACT_METRIC",
        f"runId={metric.run_id}",
        f"section={metric.section}",
        f"kind={metric.kind}",
        f"url={metric.url}",
        f"durationMs={metric.duration_ms}",
        f"status={metric.status}",
    ]
    if metric.error_type:
        parts.append(f"errorType={metric.error_type}")
    if metric.session_error is not None:
        parts.append(f"sessionError={str(metric.session_error).lower()}")
    return " ".join(parts)


class RunTelemetry:
    """File-backed telemetry sink for one run."""

    def __init__(self, reports_dir: Path, run_id: str) -> None:
        self.reports_dir = Path(reports_dir)
        self.run_id = run_id

    @property
    def raw_dir(self) -> Path:
        return self.reports_dir / "raw"

    @property
    def summary_dir(self) -> Path:
        return self.reports_dir / "summary"

    def _write(self, path: Path, text: str, what: str) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to write %s %s: %s", what, path, exc)
            return False
        logger.debug("Wrote %s: %s", what, path)
        return True

    def _append(self, path: Path, line: str, what: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            logger.warning("Failed to append %s %s: %s", what, path, exc)

    # ------------------------------------------------------------------
    # Extraction-level events
    # ------------------------------------------------------------------
    def emit_metric(self, metric: ExtractMetric) -> None:
        logger.info(format_metric_line(metric))
        self._append(
            self.raw_dir / f"metrics-{self.run_id}.jsonl",
            json.dumps(metric.to_dict()),
            "metric",
        )

    def write_debug_payload(
        self, section: str, page_number: int, url: str, payload: Any
    ) -> None:
        path = self.raw_dir / f"category-debug-{self.run_id}-{section}-p{page_number}.json"
        try:
            text = _dump({"runId": self.run_id, "section": section, "page": page_number,
                          "url": url, "payload": payload})
        except (TypeError, ValueError) as exc:
            logger.warning("Debug payload for %s is not serializable: %s", url, exc)
            text = _dump({"runId": self.run_id, "section": section, "page": page_number,
                          "url": url, "payload": repr(payload)})
        self._write(path, text, "category debug payload")

    # ------------------------------------------------------------------
    # Run-level reports
    # ------------------------------------------------------------------
    def append_run_log(
        self, report: RunReport, status: str, section: Optional[str] = None
    ) -> None:
        """Append one checkpoint line to ``runs.log``."""
        try:
            data = report.to_dict()
            entry: dict[str, Any] = {
                "runId": report.run_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "backendSessionIds": dict(report.backend_session_ids),
                "section": section or "ALL",
                "status": status,
                "config": data["config"],
                "totals": data["totals"],
                "errors": dict(report.errors),
            }
            if section:
                entry["sectionStats"] = data["sections"].get(section)
                entry["sectionStatus"] = data["section_status"].get(section)
            line = json.dumps(entry)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialize runs.log entry: %s", exc)
            return
        self._append(self.reports_dir / "runs.log", line, "runs.log entry")

    def _report_text(self, report: RunReport, what: str) -> Optional[str]:
        try:
            return _dump(report.to_dict())
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialize %s for run %s: %s", what, report.run_id, exc)
            return None

    def write_progress_snapshot(self, report: RunReport) -> None:
        text = self._report_text(report, "progress snapshot")
        if text is None:
            return
        self._write(
            self.summary_dir / f"run-{report.run_id}-progress.json", text, "progress snapshot"
        )

    def write_final_summary(self, report: RunReport) -> None:
        text = self._report_text(report, "run summary")
        if text is None:
            return
        if self._write(self.summary_dir / f"run-{report.run_id}.json", text, "run summary"):
            logger.info("Wrote run summary: %s", self.summary_dir / f"run-{report.run_id}.json")
        self._write(self.summary_dir / f"run-{report.run_id}-progress.json", text,
                    "progress snapshot")
        self._write(self.reports_dir / "latest-summary.json", text, "latest summary")

    def write_backend_artifacts(
        self,
        metrics_by_section: dict[str, Any],
        history_by_section: dict[str, Any],
    ) -> None:
        """Write backend metrics/history, falling back to a stub on bad payloads."""
        payload = {
            "runId": self.run_id,
            "metricsBySection": metrics_by_section,
            "historyBySection": history_by_section,
        }
        try:
            text = _dump(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("Backend artifacts not serializable, writing stub: %s", exc)
            text = _dump({
                "runId": self.run_id,
                "error": "Failed to serialize backend metrics/history by section",
                "originalError": str(exc),
            })
        self._write(self.raw_dir / f"backend-{self.run_id}.json", text, "backend artifacts")
