"""Decide which listing page to visit next."""

from __future__ import annotations

import logging
from typing import Optional

from harvester.crawler.identifiers import absolutize, is_usable_pagination_hint
from harvester.crawler.models import PageTarget, Section

logger = logging.getLogger(__name__)


class PaginationCursor:
    """Walks one section's listing pages.

    The backend's "next page" hint wins when it is a real link.  When it is
    missing or looks like an element reference, the cursor falls back to the
    predictable ``<base>page/<n>/`` URL, but only if the current page produced
    results; an empty page with no usable hint ends the section.
    """

    def __init__(self, section: Section) -> None:
        self.section = section

    def first(self) -> PageTarget:
        return PageTarget(url=self.section.base_url, number=1)

    def sequential_url(self, number: int) -> str:
        if number <= 1:
            return self.section.base_url
        return f"{self.section.base_url}page/{number}/"

    def next(
        self,
        current: PageTarget,
        hint: Optional[str],
        had_any_results: bool,
    ) -> Optional[PageTarget]:
        """Return the next :class:`PageTarget`, or ``None`` when the section is done."""
        number = current.number + 1

        if is_usable_pagination_hint(hint):
            return PageTarget(url=absolutize(hint, self.section.base_url), number=number)  # type: ignore[arg-type]

        if not had_any_results:
            return None

        fallback = self.sequential_url(number)
        if hint:
            logger.info("Next-page hint %r is not a usable link; trying %s", hint, fallback)
        else:
            logger.info("No next-page hint; trying %s", fallback)
        return PageTarget(url=fallback, number=number)
