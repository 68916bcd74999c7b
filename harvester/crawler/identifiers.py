"""Predicates and helpers for URLs coming back from the extraction backend.

The backend is asked for real ``href`` values but sometimes answers with an
internal element reference such as ``"0-346"`` instead.  Nothing it returns is
trusted until it passes one of the predicates below.
"""

from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit

# Element references look like "5", "0-35378", "2-9".
_NODE_REFERENCE = re.compile(r"^\d+(-\d+)?$")
_SLUG_UNSAFE = re.compile(r"[^a-z0-9\-_]+")


def is_usable_target(candidate: Any) -> bool:
    """Return ``True`` for absolute http(s) URLs and root-relative paths.

    Protocol-relative references (``//host/path``) are rejected.
    """
    if not isinstance(candidate, str):
        return False
    trimmed = candidate.strip()
    if not trimmed or trimmed.startswith("//"):
        return False
    return trimmed.startswith(("http://", "https://", "/"))


def is_usable_pagination_hint(candidate: Any) -> bool:
    """Like :func:`is_usable_target` but also rejects element references."""
    if not isinstance(candidate, str):
        return False
    if _NODE_REFERENCE.match(candidate.strip()):
        return False
    return is_usable_target(candidate)


def absolutize(candidate: str, base_url: str) -> str:
    """Resolve *candidate* against the origin of *base_url*.

    Absolute URLs are returned unchanged (apart from surrounding whitespace).
    """
    trimmed = candidate.strip()
    if trimmed.startswith(("http://", "https://")):
        return trimmed
    parts = urlsplit(base_url)
    if not parts.scheme or not parts.netloc:
        return trimmed
    return urljoin(f"{parts.scheme}://{parts.netloc}/", trimmed)


def clean_slug(value: Any) -> Optional[str]:
    """Lower-case *value* and collapse every run of unsafe characters to ``-``.

    Returns ``None`` when only separators would remain, e.g. for ``"../.."``.
    """
    if not isinstance(value, str):
        return None
    slug = _SLUG_UNSAFE.sub("-", value.strip().lower())
    return slug if slug.strip("-_") else None


def slug_from_url(url: Any) -> Optional[str]:
    """Derive a filesystem-safe slug from the last non-empty path segment."""
    if not isinstance(url, str) or not url.strip():
        return None
    segments = [s for s in urlsplit(url.strip()).path.split("/") if s]
    if not segments:
        return None
    return clean_slug(segments[-1])
