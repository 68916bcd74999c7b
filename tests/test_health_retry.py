"""Tests for the session health monitor and the retry decision function."""

from __future__ import annotations

import pytest

from harvester.crawler.health import Outcome, SessionHealthMonitor
from harvester.crawler.retry import (
    AttemptState,
    ErrorKind,
    Escalate,
    GiveUp,
    Retry,
    RetryPolicy,
    next_action,
)


class TestSessionHealthMonitor:
    def test_trips_after_three_session_errors(self) -> None:
        monitor = SessionHealthMonitor(threshold=3)
        for _ in range(2):
            monitor.record_outcome(Outcome.SESSION_ERROR)
        assert monitor.is_healthy()
        monitor.record_outcome(Outcome.SESSION_ERROR)
        assert not monitor.is_healthy()
        assert monitor.consecutive_failures == 3

    def test_success_resets_counter(self) -> None:
        monitor = SessionHealthMonitor(threshold=3)
        monitor.record_outcome(Outcome.SESSION_ERROR)
        monitor.record_outcome(Outcome.SESSION_ERROR)
        monitor.record_outcome(Outcome.SUCCESS)
        monitor.record_outcome(Outcome.SESSION_ERROR)
        monitor.record_outcome(Outcome.SESSION_ERROR)
        assert monitor.is_healthy()
        assert monitor.consecutive_failures == 2

    def test_other_error_leaves_counter(self) -> None:
        monitor = SessionHealthMonitor(threshold=3)
        monitor.record_outcome(Outcome.SESSION_ERROR)
        monitor.record_outcome(Outcome.OTHER_ERROR)
        assert monitor.consecutive_failures == 1

    def test_unhealthy_is_latched(self) -> None:
        monitor = SessionHealthMonitor(threshold=1)
        monitor.record_outcome(Outcome.SESSION_ERROR)
        monitor.record_outcome(Outcome.SUCCESS)
        assert not monitor.is_healthy()

    def test_trip(self) -> None:
        monitor = SessionHealthMonitor()
        monitor.trip()
        assert not monitor.is_healthy()

    def test_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SessionHealthMonitor(threshold=0)


class TestNextAction:
    policy = RetryPolicy(max_attempts=3, backoff_unit=1.0)

    def _failed(self, attempt: int, kind: ErrorKind) -> AttemptState:
        state = AttemptState()
        for _ in range(attempt):
            state = state.begin_attempt()
        return state.failed(kind)

    def test_session_error_backs_off_linearly(self) -> None:
        assert next_action(self._failed(1, ErrorKind.SESSION), self.policy) == Retry(delay=1.0)
        assert next_action(self._failed(2, ErrorKind.SESSION), self.policy) == Retry(delay=2.0)

    def test_final_session_error_escalates(self) -> None:
        assert isinstance(next_action(self._failed(3, ErrorKind.SESSION), self.policy), Escalate)

    def test_permanent_error_gives_up_immediately(self) -> None:
        assert isinstance(next_action(self._failed(1, ErrorKind.PERMANENT), self.policy), GiveUp)

    def test_backoff_unit_scales_delay(self) -> None:
        policy = RetryPolicy(max_attempts=3, backoff_unit=0.5)
        assert next_action(self._failed(2, ErrorKind.SESSION), policy) == Retry(delay=1.0)

    def test_begin_attempt_clears_last_error(self) -> None:
        state = AttemptState().begin_attempt().failed(ErrorKind.SESSION).begin_attempt()
        assert state.attempt == 2
        assert state.last_error is None
