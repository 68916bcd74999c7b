"""Markdown rendering of harvested posts.

Each post becomes one file with a YAML front-matter block followed by the
article body::

    ---
    title: Water as medicine
    url: https://www.example.com/water-as-medicine/
    date: '2021-03-04'
    section: dr-diet
    categories: []
    tags: []
    ---

    <markdown body>
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from harvester.crawler.identifiers import clean_slug, slug_from_url
from harvester.crawler.models import PostDetail


def front_matter(detail: PostDetail) -> dict[str, Any]:
    """Return the ordered front-matter mapping for *detail*."""
    data: dict[str, Any] = {"title": detail.title, "url": detail.url}
    if detail.date:
        data["date"] = detail.date
    data["section"] = detail.section
    data["categories"] = list(detail.categories)
    data["tags"] = list(detail.tags)
    return data


def render_post_markdown(detail: PostDetail) -> str:
    header = yaml.safe_dump(
        front_matter(detail),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"---\n{header}---\n\n{detail.markdown}"


def post_file_name(detail: PostDetail) -> str:
    return f"{clean_slug(detail.slug) or slug_from_url(detail.url) or 'untitled'}.md"


def write_post_markdown(detail: PostDetail, output_root: Path) -> Path:
    """Write *detail* to ``<output_root>/<section>/<slug>.md`` and return the path.

    Both path components are cleaned slugs, so the file always lands inside
    *output_root*.
    """
    section_dir = Path(output_root) / (clean_slug(detail.section) or "unsectioned")
    section_dir.mkdir(parents=True, exist_ok=True)
    path = section_dir / post_file_name(detail)
    path.write_text(render_post_markdown(detail), encoding="utf-8")
    return path
