"""Tests for the browser extraction backend.

No real browser or model is started: the Playwright page and the chat model
are replaced by mocks.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from langchain_core.messages import SystemMessage
from playwright.sync_api import Error as PlaywrightError

from harvester.browser.llm import build_messages, parse_json_reply
from harvester.browser.page import extract_page_context
from harvester.browser.session import BrowserSession
from harvester.crawler.errors import PermanentExtractionError, TransientBackendError
from harvester.crawler.models import ListingPageSchema

LISTING_HTML = """
<html>
  <head><title>Diet Archives</title></head>
  <body>
    <nav><a href="/">Home</a></nav>
    <main>
      <article><h2><a href="/water-as-medicine/">Water as medicine</a></h2><p>March 4, 2021</p></article>
      <article><h2><a href="https://blog.example.com/salt/">Salt</a></h2></article>
      <a href="#top">Back to top</a>
      <a href="/category/diet/page/2/">Next</a>
    </main>
  </body>
</html>
"""


class TestPageContext:
    def test_links_absolute_and_deduplicated(self) -> None:
        ctx = extract_page_context(LISTING_HTML, "https://blog.example.com/category/diet/")
        hrefs = [href for _, href in ctx.links]
        assert "https://blog.example.com/water-as-medicine/" in hrefs
        assert "https://blog.example.com/category/diet/page/2/" in hrefs
        assert ("Next", "https://blog.example.com/category/diet/page/2/") in ctx.links
        assert not any(h.endswith("#top") for h in hrefs)
        assert len(hrefs) == len(set(hrefs))
        assert ctx.title == "Diet Archives"

    def test_render_truncates_but_keeps_tail(self) -> None:
        ctx = extract_page_context(LISTING_HTML, "https://blog.example.com/category/diet/")
        ctx.text = "x" * 5000
        rendered = ctx.render(1000)
        assert len(rendered) < 1100
        assert "page/2/" in rendered
        assert "[truncated]" in rendered


class TestJsonReplies:
    @pytest.mark.parametrize(
        "reply",
        [
            '{"posts": []}',
            '```json\n{"posts": []}\n```',
            'Here you go:\n{"posts": []}\nHope that helps.',
            [{"type": "text", "text": '{"posts": []}'}],
        ],
    )
    def test_parses(self, reply: object) -> None:
        assert parse_json_reply(reply) == {"posts": []}

    def test_unparseable(self) -> None:
        with pytest.raises(PermanentExtractionError):
            parse_json_reply("I could not find any posts.")

    def test_messages_include_schema(self) -> None:
        messages = build_messages("Find posts", ListingPageSchema, "PAGE")
        assert isinstance(messages[0], SystemMessage)
        assert "nextPageUrl" in messages[1].content
        assert messages[1].content.endswith("PAGE")

    def test_schemaless_messages(self) -> None:
        assert "any JSON object" in build_messages("Debug", None, "PAGE")[1].content


def _session(llm: MagicMock, page: MagicMock) -> BrowserSession:
    session = BrowserSession(llm=llm, settle_seconds=0, navigation_timeout=5, sleep=lambda _s: None)
    session._page = page
    session.session_id = "test"
    return session


def _page(url: str = "about:blank") -> MagicMock:
    page = MagicMock()
    page.url = url
    page.content.return_value = LISTING_HTML
    return page


def _llm(content: str) -> MagicMock:
    llm = MagicMock()
    llm.invoke.return_value = SimpleNamespace(
        content=content, usage_metadata={"input_tokens": 100, "output_tokens": 20}
    )
    return llm


class TestBrowserSession:
    def test_extract_navigates_and_parses(self) -> None:
        page = _page()
        session = _session(_llm('```json\n{"posts": [], "nextPageUrl": null}\n```'), page)

        payload = session.extract("Find posts", ListingPageSchema, "https://blog.example.com/category/diet/")

        assert payload == {"posts": [], "nextPageUrl": None}
        page.goto.assert_called_once()
        metrics = session.metrics()
        assert metrics["calls"] == 1
        assert metrics["inputTokens"] == 100
        assert metrics["navigations"] == 1
        assert session.history()[0]["status"] == "ok"
        assert session.history()[0]["schema"] == "ListingPageSchema"

    def test_same_page_not_reloaded(self) -> None:
        page = _page("https://blog.example.com/category/diet/")
        session = _session(_llm("{}"), page)
        session.extract("Debug", None, "https://blog.example.com/category/diet")
        page.goto.assert_not_called()

    def test_closed_browser_is_transient(self) -> None:
        page = _page()
        page.goto.side_effect = PlaywrightError("Target page, context or browser has been closed")
        session = _session(_llm("{}"), page)
        with pytest.raises(TransientBackendError):
            session.extract("x", None, "https://blog.example.com/a/")
        assert session.metrics()["failures"] == 1

    def test_navigation_timeout_is_permanent(self) -> None:
        page = _page()
        page.goto.side_effect = PlaywrightError("Timeout 5000ms exceeded.")
        session = _session(_llm("{}"), page)
        with pytest.raises(PermanentExtractionError):
            session.extract("x", None, "https://blog.example.com/a/")

    def test_model_failure_is_permanent(self) -> None:
        llm = MagicMock()
        llm.invoke.side_effect = ConnectionError("model server down")
        session = _session(llm, _page())
        with pytest.raises(PermanentExtractionError):
            session.extract("x", None, "https://blog.example.com/a/")
        assert session.history()[0]["status"].startswith("error")

    def test_not_started(self) -> None:
        session = BrowserSession(llm=MagicMock())
        with pytest.raises(TransientBackendError):
            session.extract("x", None, "https://blog.example.com/a/")

    def test_close_is_safe_when_not_started(self) -> None:
        BrowserSession(llm=MagicMock()).close()
