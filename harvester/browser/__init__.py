"""Browser-backed extraction backend (Playwright + LangChain chat model)."""

from harvester.browser.session import BrowserSession

__all__ = ["BrowserSession"]
