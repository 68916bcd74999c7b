"""Exception taxonomy for extraction failures.

Shape mismatches and ambiguous pagination hints are *not* exceptions: the
former becomes a ``Repaired`` result, the latter is settled by the cursor.
"""

from __future__ import annotations

import re

# Messages that mean the backend instance itself is gone, not that one page
# was hard to read.
SESSION_ERROR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"session has completed or timed out", re.IGNORECASE),
    re.compile(r"cannot connect to session", re.IGNORECASE),
    re.compile(r"target page, context or browser has been closed", re.IGNORECASE),
    re.compile(r"browser has been closed", re.IGNORECASE),
    re.compile(r"connection closed", re.IGNORECASE),
)


class HarvestError(Exception):
    """Base class for all harvester errors."""


class TransientBackendError(HarvestError):
    """The backend session is unavailable; retryable and counted against health."""


class PermanentExtractionError(HarvestError):
    """Extraction failed for this target only; never retried."""


def is_session_error(exc: BaseException) -> bool:
    """Return ``True`` when *exc* signals an unusable backend session."""
    if isinstance(exc, TransientBackendError):
        return True
    if isinstance(exc, PermanentExtractionError):
        return False
    message = str(exc)
    return any(p.search(message) for p in SESSION_ERROR_PATTERNS)


def error_type_name(exc: BaseException) -> str:
    """Stable label for the error-kind histogram."""
    return type(exc).__name__ or "Error"
