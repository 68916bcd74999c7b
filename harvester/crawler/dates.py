"""Normalise free-form publication dates into ``YYYY-MM-DD``."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

_ISO_LIKE = re.compile(r"^\d{4}-\d{2}-\d{2}(T.*)?$")
_ORDINAL = re.compile(r"(\d+)(st|nd|rd|th)", re.IGNORECASE)

_MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
_MONTH_DAY_YEAR = re.compile(
    r"^(" + "|".join(_MONTHS) + r")\s+(\d{1,2}),?\s+(\d{4})",
    re.IGNORECASE,
)

# Two distinct defaults: a field the parser filled from the default differs
# between the two results, which means the text never contained it.
_DEFAULT_A = datetime(1901, 1, 1, 0, 0, 0)
_DEFAULT_B = datetime(1902, 2, 2, 0, 0, 0)


def _month_day_year(text: str) -> Optional[str]:
    match = _MONTH_DAY_YEAR.match(text)
    if not match:
        return None
    month = _MONTHS.index(match.group(1).lower()) + 1
    day = int(match.group(2))
    year = int(match.group(3))
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _generic_parse(text: str) -> Optional[str]:
    try:
        first = date_parser.parse(text, default=_DEFAULT_A)
        second = date_parser.parse(text, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if first.date() != second.date():
        return None
    if first.tzinfo is not None:
        first = first.astimezone(timezone.utc)
    return first.date().isoformat()


def normalize_date(text: Optional[str]) -> Optional[str]:
    """Return *text* as a canonical ``YYYY-MM-DD`` string, or ``None``.

    Rules, first match wins:

    1. Already ISO-like (``YYYY-MM-DD`` with an optional ``T...`` time part):
       returned unchanged.
    2. Ordinal suffixes are stripped (``26th`` -> ``26``).
    3. ``<MonthName> <Day>[,] <Year>`` is matched case-insensitively.
    4. A generic parse is attempted; the UTC calendar date is returned only
       when year, month and day all came from the text.
    5. Otherwise a warning is logged and ``None`` returned.  Callers keep the
       raw text as the stored value.
    """
    if not text:
        return None
    raw = text.strip()
    if not raw:
        return None

    if _ISO_LIKE.match(raw):
        return raw

    cleaned = _ORDINAL.sub(r"\1", raw)

    normalized = _month_day_year(cleaned) or _generic_parse(cleaned)
    if normalized is None:
        logger.warning("Could not normalize date: %r", text)
    return normalized
