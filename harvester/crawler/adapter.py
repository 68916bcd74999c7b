"""Single-call wrapper around the extraction backend.

Every call goes to the backend exactly once (retrying is the crawler's job),
is timed, emits one :class:`~harvester.crawler.interfaces.ExtractMetric`
whatever happens, and comes back as one of three result variants:

``Valid``
    The payload matched the expected shape.
``Repaired``
    A payload came back but failed validation; the normalizer rebuilt a
    best-effort entity from it.  Callers must treat it as lower quality.
``Failed``
    The backend call raised.  ``session_error`` tells the crawler whether
    the failure counts against backend health.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from harvester.crawler.errors import error_type_name, is_session_error
from harvester.crawler.interfaces import ExtractionBackend, ExtractMetric, TelemetrySink
from harvester.crawler.models import (
    ListingPage,
    ListingPageSchema,
    PageTarget,
    PostDetail,
    PostDetailSchema,
    Section,
)
from harvester.crawler.normalizer import (
    detail_from_model,
    detail_from_payload,
    listing_from_model,
    listing_from_payload,
)
from harvester.crawler.prompts import (
    detail_instruction,
    diagnostic_instruction,
    listing_instruction,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Result variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Repaired(Generic[T]):
    value: T
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class Failed:
    error: BaseException
    error_type: str
    session_error: bool

    @property
    def reason(self) -> str:
        return str(self.error) or self.error_type


ExtractionResult = Union[Valid[T], Repaired[T], Failed]


def _issues(exc: ValidationError) -> tuple[str, ...]:
    return tuple(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def _debug_item_count(payload: Any) -> int:
    if isinstance(payload, list):
        return len(payload)
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        return len(payload["items"])
    return 0


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class ExtractionAdapter:
    def __init__(
        self,
        backend: ExtractionBackend,
        telemetry: TelemetrySink,
        run_id: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.telemetry = telemetry
        self.run_id = run_id
        self._clock = clock

    # ------------------------------------------------------------------
    # Generic call
    # ------------------------------------------------------------------
    def extract(
        self,
        section: Section,
        target_url: str,
        instruction: str,
        schema: Optional[type[BaseModel]],
        kind: str,
    ) -> ExtractionResult[Any]:
        """Call the backend once and classify the outcome.

        ``Valid`` carries the validated pydantic model (or the raw payload
        when *schema* is ``None``); ``Repaired`` carries the raw payload that
        failed validation.
        """
        start = self._clock()
        try:
            payload = self.backend.extract(instruction, schema, target_url)
        except Exception as exc:  # noqa: BLE001 - any backend failure is classified
            session_error = is_session_error(exc)
            error_type = error_type_name(exc)
            self._emit(section, kind, target_url, start, "error", error_type, session_error)
            logger.error(
                "Extraction failed for %s (%s, session_error=%s): %s",
                target_url, error_type, session_error, exc,
            )
            return Failed(error=exc, error_type=error_type, session_error=session_error)

        if schema is None:
            self._emit(section, kind, target_url, start, "ok")
            return Valid(payload)

        try:
            model = schema.model_validate(payload)
        except ValidationError as exc:
            issues = _issues(exc)
            self._emit(section, kind, target_url, start, "invalid-shape")
            logger.warning(
                "%s validation failed for %s; using fallback. Issues: %s",
                schema.__name__, target_url, "; ".join(issues),
            )
            return Repaired(payload, issues)

        self._emit(section, kind, target_url, start, "ok")
        return Valid(model)

    # ------------------------------------------------------------------
    # Listing pages
    # ------------------------------------------------------------------
    def extract_listing(
        self, section: Section, target: PageTarget
    ) -> ExtractionResult[ListingPage]:
        logger.info("Extracting listing page %s ...", target.url)
        result = self.extract(
            section,
            target.url,
            listing_instruction(section, target.url),
            ListingPageSchema,
            kind="category",
        )
        if isinstance(result, Failed):
            return result

        listing: ListingPage
        if isinstance(result, Valid):
            listing = listing_from_model(result.value)
            typed: ExtractionResult[ListingPage] = Valid(listing)
        else:
            listing = listing_from_payload(result.value)
            typed = Repaired(listing, result.issues)

        if not listing.summaries:
            logger.warning(
                "0 posts extracted for section %s on %s (next hint: %r)",
                section.slug, target.url, listing.next_hint,
            )
            self._diagnose(section, target)
        return typed

    def _diagnose(self, section: Section, target: PageTarget) -> None:
        """Capture what the backend perceives on an empty listing page.

        Purely advisory: the payload is written out for inspection and never
        consulted by the crawler.
        """
        result = self.extract(
            section, target.url, diagnostic_instruction(target.url), None, kind="debug"
        )
        if isinstance(result, Failed):
            logger.warning(
                "CATEGORY_DEBUG_ERROR runId=%s section=%s page=%d error=%s",
                self.run_id, section.slug, target.number, result.reason,
            )
            return

        try:
            self.telemetry.write_debug_payload(
                section.slug, target.number, target.url, result.value
            )
        except Exception as exc:  # noqa: BLE001 - telemetry is best-effort
            logger.warning("Failed to write debug payload for %s: %s", target.url, exc)
        logger.info(
            "CATEGORY_COVERAGE runId=%s section=%s page=%d debugPosts=%d structuredPosts=0",
            self.run_id, section.slug, target.number, _debug_item_count(result.value),
        )

    # ------------------------------------------------------------------
    # Detail pages
    # ------------------------------------------------------------------
    def extract_detail(
        self, section: Section, url: str
    ) -> ExtractionResult[PostDetail]:
        result = self.extract(
            section, url, detail_instruction(section, url), PostDetailSchema, kind="post"
        )
        if isinstance(result, Failed):
            return result
        if isinstance(result, Valid):
            return Valid(detail_from_model(result.value, url, section))
        logger.warning("Using fallback PostDetail for %s", url)
        return Repaired(detail_from_payload(result.value, url, section), result.issues)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------
    def _emit(
        self,
        section: Section,
        kind: str,
        url: str,
        start: float,
        status: str,
        error_type: Optional[str] = None,
        session_error: Optional[bool] = None,
    ) -> None:
        metric = ExtractMetric(
            run_id=self.run_id,
            section=section.slug,
            kind=kind,
            url=url,
            duration_ms=int((self._clock() - start) * 1000),
            status=status,
            error_type=error_type,
            session_error=session_error,
        )
        try:
            self.telemetry.emit_metric(metric)
        except Exception as exc:  # noqa: BLE001 - telemetry is best-effort
            logger.warning("Failed to emit extract metric for %s: %s", url, exc)
