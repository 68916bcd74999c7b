"""Playwright + language-model extraction backend.

One :class:`BrowserSession` owns one browser page for the lifetime of a
section.  ``extract`` navigates when needed, reads the rendered page and asks
the configured chat model for JSON.

Usage::

    session = BrowserSession()
    session.start()
    try:
        payload = session.extract(instruction, ListingPageSchema, url)
    finally:
        session.close()
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from harvester.browser.llm import build_messages, get_llm, parse_json_reply
from harvester.browser.page import extract_page_context
from harvester.config import settings
from harvester.crawler.errors import (
    PermanentExtractionError,
    TransientBackendError,
    is_session_error,
)

logger = logging.getLogger(__name__)

_HISTORY_LIMIT = 200


def classify_browser_error(exc: BaseException) -> Exception:
    """Map a Playwright failure onto the harvester taxonomy."""
    if is_session_error(exc):
        return TransientBackendError(str(exc))
    return PermanentExtractionError(str(exc))


def _same_page(a: str, b: str) -> bool:
    return a.rstrip("/") == b.rstrip("/")


class BrowserSession:
    """Extraction backend bound to a single browser page."""

    def __init__(
        self,
        *,
        headless: Optional[bool] = None,
        cdp_url: Optional[str] = None,
        llm: Any = None,
        settle_seconds: Optional[float] = None,
        navigation_timeout: Optional[float] = None,
        max_context_chars: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.headless = settings.browser_headless if headless is None else headless
        self.cdp_url = cdp_url if cdp_url is not None else settings.browser_cdp_url
        self.settle_seconds = (
            settings.page_settle_seconds if settle_seconds is None else settle_seconds
        )
        self.navigation_timeout = (
            settings.navigation_timeout if navigation_timeout is None else navigation_timeout
        )
        self.max_context_chars = max_context_chars or settings.page_context_chars
        self.session_id: Optional[str] = None

        self._llm = llm
        self._sleep = sleep
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

        self._history: deque[dict[str, Any]] = deque(maxlen=_HISTORY_LIMIT)
        self._counters = {
            "calls": 0,
            "failures": 0,
            "navigations": 0,
            "inputTokens": 0,
            "outputTokens": 0,
            "totalDurationMs": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Launch (or attach to) a browser and open the working page.

        Playwright is imported lazily so the rest of the package imports
        without a browser installed.
        """
        from playwright.sync_api import sync_playwright  # noqa: PLC0415

        self._playwright = sync_playwright().start()
        chromium = self._playwright.chromium
        if self.cdp_url:
            logger.info("Connecting to remote browser at %s", self.cdp_url)
            self._browser = chromium.connect_over_cdp(self.cdp_url)
            context = (
                self._browser.contexts[0] if self._browser.contexts else self._browser.new_context()
            )
        else:
            self._browser = chromium.launch(headless=self.headless)
            context = self._browser.new_context()

        self._page = context.pages[0] if context.pages else context.new_page()
        self._page.set_default_timeout(self.navigation_timeout * 1000)

        if self._llm is None:
            self._llm = get_llm()
        self.session_id = uuid.uuid4().hex
        logger.info("Browser session %s ready (headless=%s)", self.session_id, self.headless)

    def close(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            self._browser = None
            self._page = None
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    def _navigate(self, url: str) -> None:
        if _same_page(self._page.url, url):
            return
        self._page.goto(
            url,
            timeout=int(self.navigation_timeout * 1000),
            wait_until="domcontentloaded",
        )
        self._counters["navigations"] += 1
        # Listing grids fill in after DOMContentLoaded.
        self._sleep(self.settle_seconds)

    def extract(
        self,
        instruction: str,
        schema: Optional[type[BaseModel]],
        target_url: str,
    ) -> Any:
        """Return the model's JSON reading of *target_url*.

        Raises:
            TransientBackendError: The page, context or browser is gone.
            PermanentExtractionError: Navigation failed for another reason, or
                the model call failed or did not answer with JSON.
        """
        if self._page is None:
            raise TransientBackendError("Browser session has been closed or was never started")

        started = time.monotonic()
        self._counters["calls"] += 1
        try:
            payload = self._extract(instruction, schema, target_url)
        except Exception as exc:
            self._counters["failures"] += 1
            self._record(target_url, schema, started, f"error: {type(exc).__name__}")
            raise
        self._record(target_url, schema, started, "ok")
        return payload

    def _extract(
        self, instruction: str, schema: Optional[type[BaseModel]], target_url: str
    ) -> Any:
        from playwright.sync_api import Error as PlaywrightError  # noqa: PLC0415

        try:
            self._navigate(target_url)
            html = self._page.content()
            current_url = self._page.url
        except PlaywrightError as exc:
            raise classify_browser_error(exc) from exc

        context = extract_page_context(html, current_url)
        messages = build_messages(instruction, schema, context.render(self.max_context_chars))

        try:
            reply = self._llm.invoke(messages)
        except Exception as exc:  # noqa: BLE001 - provider errors vary by backend
            raise PermanentExtractionError(f"Language model call failed: {exc}") from exc

        usage = getattr(reply, "usage_metadata", None) or {}
        self._counters["inputTokens"] += int(usage.get("input_tokens", 0) or 0)
        self._counters["outputTokens"] += int(usage.get("output_tokens", 0) or 0)

        content = reply.content if hasattr(reply, "content") else reply
        return parse_json_reply(content)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def _record(
        self, url: str, schema: Optional[type[BaseModel]], started: float, status: str
    ) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        self._counters["totalDurationMs"] += duration_ms
        self._history.append(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "url": url,
                "schema": schema.__name__ if schema is not None else None,
                "durationMs": duration_ms,
                "status": status,
            }
        )

    def metrics(self) -> dict[str, Any]:
        return {"sessionId": self.session_id, **self._counters}

    def history(self) -> list[dict[str, Any]]:
        return list(self._history)
