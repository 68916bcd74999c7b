"""Page context: turns rendered HTML into what the language model reads.

The model gets the readable text of the page plus every hyperlink with its
anchor text, so it can report real hrefs (post links, pagination) instead of
inventing them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

import trafilatura
from bs4 import BeautifulSoup

_MAX_LINKS = 400


@dataclass
class PageContext:
    url: str
    title: str
    text: str
    links: list[tuple[str, str]] = field(default_factory=list)

    def render(self, max_chars: int) -> str:
        """Format the context as one prompt block of at most *max_chars*."""
        link_lines = "\n".join(f"- [{text}]({href})" for text, href in self.links)
        body = (
            f"URL: {self.url}\n"
            f"TITLE: {self.title}\n\n"
            f"PAGE TEXT:\n{self.text}\n\n"
            f"LINKS ON PAGE (anchor text and href):\n{link_lines}\n"
        )
        if len(body) <= max_chars:
            return body
        # Keep the tail too: pagination links sit at the end of the list.
        head = max_chars * 2 // 3
        return body[:head] + "\n...[truncated]...\n" + body[-(max_chars - head):]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _bs4_fallback(soup: BeautifulSoup) -> str:
    """Readable text from ``<main>``/``<article>`` when trafilatura finds nothing."""
    for tag in soup(["script", "style", "nav", "footer", "header"]):
        tag.decompose()
    container = soup.find("main") or soup.find("article") or soup.body
    if container is None:
        return soup.get_text(separator="\n", strip=True)
    return container.get_text(separator="\n", strip=True)


def _extract_links(soup: BeautifulSoup, base_url: str) -> list[tuple[str, str]]:
    """Deduplicated ``(anchor text, absolute href)`` pairs, fragments excluded."""
    seen: set[str] = set()
    links: list[tuple[str, str]] = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            continue
        absolute = urljoin(base_url, href)
        if absolute in seen:
            continue
        seen.add(absolute)
        text = re.sub(r"\s+", " ", a.get_text(" ", strip=True))[:120]
        links.append((text, absolute))
        if len(links) >= _MAX_LINKS:
            break
    return links


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_page_context(html: str, url: str) -> PageContext:
    """Build a :class:`PageContext` from rendered *html*.

    Tries ``trafilatura`` first (markdown-ish formatting kept so headings
    survive), then falls back to a BeautifulSoup heuristic.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    links = _extract_links(soup, url)

    text = trafilatura.extract(
        html,
        include_formatting=True,
        include_links=False,
        include_images=False,
        include_tables=True,
        no_fallback=False,
        url=url,
    )
    if not text:
        text = _bs4_fallback(soup)

    return PageContext(url=url, title=title, text=text or "", links=links)
