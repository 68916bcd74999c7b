"""The single boundary where loosely-typed backend payloads become entities.

Validated payloads arrive as pydantic models and convert directly.  Payloads
that failed validation are repaired field by field: a value is kept when it
has the expected primitive type, otherwise a deterministic default is used, so
a page is never lost to a small schema drift.

On both paths the slug is cleaned to ``[a-z0-9-_]`` and the section is the
slug of the section being crawled, whatever the backend reported.
"""

from __future__ import annotations

from typing import Any, Optional

from harvester.crawler.identifiers import (
    absolutize,
    clean_slug,
    is_usable_target,
    slug_from_url,
)
from harvester.crawler.models import (
    ListingPage,
    ListingPageSchema,
    PostDetail,
    PostDetailSchema,
    PostSummary,
    Section,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _str_list(value: Any) -> tuple[str, ...]:
    """Keep only the string entries of *value*; anything else becomes ``()``."""
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str))


def _as_mapping(payload: Any) -> dict:
    return payload if isinstance(payload, dict) else {}


def _canonical_url(candidate: Any, requested_url: str) -> str:
    if is_usable_target(candidate):
        return absolutize(candidate, requested_url)
    return requested_url


def _slug(candidate: Any, url: str, requested_url: str) -> str:
    return (
        clean_slug(candidate)
        or slug_from_url(url)
        or slug_from_url(requested_url)
        or "untitled"
    )


# ---------------------------------------------------------------------------
# Listing pages
# ---------------------------------------------------------------------------

def listing_from_model(model: ListingPageSchema) -> ListingPage:
    summaries = tuple(
        PostSummary(
            url=p.url,
            title=p.title,
            date=p.date,
            categories=tuple(p.categories or ()),
            tags=tuple(p.tags or ()),
        )
        for p in model.posts
    )
    return ListingPage(summaries=summaries, next_hint=model.next_page_url)


def listing_from_payload(payload: Any) -> ListingPage:
    """Best-effort :class:`ListingPage` from a payload that failed validation.

    Entries without a string ``url`` and ``title`` are dropped.  The next-page
    hint is read from ``nextPageUrl`` or, failing that, ``next``.
    """
    obj = _as_mapping(payload)
    raw_posts = obj.get("posts")
    summaries: list[PostSummary] = []
    for entry in raw_posts if isinstance(raw_posts, list) else []:
        if not isinstance(entry, dict):
            continue
        url, title = entry.get("url"), entry.get("title")
        if not isinstance(url, str) or not isinstance(title, str):
            continue
        summaries.append(
            PostSummary(
                url=url,
                title=title,
                date=_str_or_none(entry.get("date")),
                categories=_str_list(entry.get("categories")),
                tags=_str_list(entry.get("tags")),
            )
        )

    next_hint = _str_or_none(obj.get("nextPageUrl")) or _str_or_none(obj.get("next"))
    return ListingPage(summaries=tuple(summaries), next_hint=next_hint)


# ---------------------------------------------------------------------------
# Detail pages
# ---------------------------------------------------------------------------

def detail_from_model(
    model: PostDetailSchema, requested_url: str, section: Section
) -> PostDetail:
    url = _canonical_url(model.url, requested_url)
    return PostDetail(
        slug=_slug(model.slug, url, requested_url),
        title=model.title,
        url=url,
        date=model.date,
        section=section.slug,
        categories=tuple(model.categories or ()),
        tags=tuple(model.tags or ()),
        markdown=model.markdown,
    )


def detail_from_payload(
    payload: Any, requested_url: str, section: Section
) -> PostDetail:
    """Best-effort :class:`PostDetail` from a payload that failed validation.

    Defaults: slug from the URL (else ``"untitled"``), title from the slug or
    the raw URL, url = *requested_url*, section = *section* slug, empty lists
    and an empty body.
    """
    obj = _as_mapping(payload)
    url = _canonical_url(obj.get("url"), requested_url)
    slug = _slug(obj.get("slug"), url, requested_url)
    title = _str_or_none(obj.get("title")) or slug_from_url(requested_url) or requested_url

    return PostDetail(
        slug=slug,
        title=title,
        url=url,
        date=_str_or_none(obj.get("date")),
        section=section.slug,
        categories=_str_list(obj.get("categories")),
        tags=_str_list(obj.get("tags")),
        markdown=_str_or_none(obj.get("markdown")) or "",
    )
