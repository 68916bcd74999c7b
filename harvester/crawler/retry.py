"""Per-URL retry policy as a pure decision function.

The crawler threads an :class:`AttemptState` through :func:`next_action`
after every failed attempt and does what the returned action says.  No I/O
happens here, so the backoff and escalation rules are testable on their own.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union


class ErrorKind(str, Enum):
    SESSION = "session"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_unit: float = 1.0


@dataclass(frozen=True)
class AttemptState:
    attempt: int = 0
    last_error: Optional[ErrorKind] = None

    def begin_attempt(self) -> "AttemptState":
        return replace(self, attempt=self.attempt + 1, last_error=None)

    def failed(self, kind: ErrorKind) -> "AttemptState":
        return replace(self, last_error=kind)


@dataclass(frozen=True)
class Retry:
    delay: float


@dataclass(frozen=True)
class GiveUp:
    pass


@dataclass(frozen=True)
class Escalate:
    """Give up on the URL *and* report a session failure to the health monitor."""


Action = Union[Retry, GiveUp, Escalate]


def next_action(state: AttemptState, policy: RetryPolicy) -> Action:
    """Decide what follows a failed attempt.

    * Permanent errors are never retried.
    * Session errors are retried after ``attempt * backoff_unit`` seconds
      until ``max_attempts`` is reached, then escalated.
    """
    if state.last_error is not ErrorKind.SESSION:
        return GiveUp()
    if state.attempt < policy.max_attempts:
        return Retry(delay=state.attempt * policy.backoff_unit)
    return Escalate()
