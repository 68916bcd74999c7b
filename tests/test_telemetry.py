"""Tests for file-backed run telemetry."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from harvester.crawler.interfaces import ExtractMetric
from harvester.crawler.models import RunStatus, Section
from harvester.crawler.report import RunAggregator
from harvester.telemetry import RunTelemetry, format_metric_line

METRIC = ExtractMetric(
    run_id="r1",
    section="dr-diet",
    kind="post",
    url="https://blog.example.com/a/",
    duration_ms=1234,
    status="error",
    error_type="TransientBackendError",
    session_error=True,
)


def _report():
    aggregator = RunAggregator("r1", {"maxPagesPerSection": 2})
    aggregator.register_sections([Section("Dr. Diet", "dr-diet", "https://blog.example.com/diet/")])
    aggregator.section_started("dr-diet")
    aggregator.page_visited("dr-diet")
    return aggregator.report


class TestMetrics:
    def test_metric_line(self) -> None:
        assert format_metric_line(METRIC) == (
            "EXTRACT_METRIC runId=r1 section=dr-diet kind=post url=https://blog.example.com/a/ "
            "durationMs=1234 status=error errorType=TransientBackendError sessionError=true"
        )

    def test_emit_logs_and_appends(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        telemetry = RunTelemetry(tmp_path, "r1")
        with caplog.at_level(logging.INFO, logger="harvester.telemetry"):
            telemetry.emit_metric(METRIC)
            telemetry.emit_metric(METRIC)
        assert caplog.text.count("EXTRACT_METRIC") == 2
        lines = (tmp_path / "raw" / "metrics-r1.jsonl").read_text().splitlines()
        assert json.loads(lines[0])["duration_ms"] == 1234
        assert len(lines) == 2

    def test_debug_payload(self, tmp_path: Path) -> None:
        RunTelemetry(tmp_path, "r1").write_debug_payload("dr-diet", 3, "https://x/", {"items": []})
        data = json.loads((tmp_path / "raw" / "category-debug-r1-dr-diet-p3.json").read_text())
        assert data["payload"] == {"items": []}
        assert data["page"] == 3


class TestRunReports:
    def test_run_log_entries(self, tmp_path: Path) -> None:
        telemetry = RunTelemetry(tmp_path, "r1")
        report = _report()
        telemetry.append_run_log(report, RunStatus.STARTED.value)
        telemetry.append_run_log(report, "complete", section="dr-diet")

        entries = [json.loads(l) for l in (tmp_path / "runs.log").read_text().splitlines()]
        assert entries[0]["section"] == "ALL"
        assert "sectionStats" not in entries[0]
        assert entries[1]["sectionStatus"] == "running"
        assert entries[1]["sectionStats"]["pages_visited"] == 1
        assert entries[1]["config"] == {"maxPagesPerSection": 2}

    def test_final_summary_files(self, tmp_path: Path) -> None:
        telemetry = RunTelemetry(tmp_path, "r1")
        report = _report()
        report.status = RunStatus.COMPLETE
        telemetry.write_final_summary(report)
        for path in (
            tmp_path / "summary" / "run-r1.json",
            tmp_path / "summary" / "run-r1-progress.json",
            tmp_path / "latest-summary.json",
        ):
            assert json.loads(path.read_text())["status"] == "run-complete"

    def test_backend_artifacts_stub_on_bad_payload(self, tmp_path: Path) -> None:
        telemetry = RunTelemetry(tmp_path, "r1")
        telemetry.write_backend_artifacts({"dr-diet": object()}, {})
        data = json.loads((tmp_path / "raw" / "backend-r1.json").read_text())
        assert data["runId"] == "r1"
        assert "error" in data

    def test_write_failures_are_swallowed(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        telemetry = RunTelemetry(blocker, "r1")
        report = _report()
        with caplog.at_level(logging.WARNING, logger="harvester.telemetry"):
            telemetry.emit_metric(METRIC)
            telemetry.append_run_log(report, "run-start")
            telemetry.write_progress_snapshot(report)
            telemetry.write_final_summary(report)
            telemetry.write_backend_artifacts({}, {})
        assert "Failed to" in caplog.text

    def test_unserializable_config_is_swallowed(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        report = _report()
        report.config["llm"] = object()
        telemetry = RunTelemetry(tmp_path, "r1")
        with caplog.at_level(logging.WARNING, logger="harvester.telemetry"):
            telemetry.append_run_log(report, "run-start")
            telemetry.write_progress_snapshot(report)
            telemetry.write_final_summary(report)
        assert "Failed to serialize" in caplog.text
        assert not (tmp_path / "latest-summary.json").exists()
