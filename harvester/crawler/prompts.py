"""Natural-language instructions sent to the extraction backend."""

from __future__ import annotations

from harvester.crawler.models import Section


def listing_instruction(section: Section, page_url: str) -> str:
    return f"""You are on a blog category page for the '{section.name}' section (URL: {page_url}).
On THIS PAGE ONLY (do not click through to other category pages or archives):
- Identify every item that looks like a blog entry, article, or podcast episode in the main content area.
- Layouts differ between sections. Do NOT rely on specific CSS classes or grid positions. Use the page semantics: post-like cards or list items with a title that links to a detail page.

CRITICAL: For each post, you MUST extract the ACTUAL href attribute from the link element, NOT an internal element ID.
- The URL must be a real web URL starting with "http://" or "https://" or a path starting with "/".
- Example of a CORRECT url: "https://www.example.com/water-as-medicine/"
- Example of an INCORRECT url: "0-346" (this is an element ID, NOT a URL)

For each post-like item on this category page, return:
  - url: the href of the link to the post detail page (absolute like "https://..." or relative like "/post-slug/").
  - title: the post title text.
  - date: (optional) the published date as a string, if visible.
  - categories: (optional) array of category names.
  - tags: (optional) array of tag names.

CRITICAL - Pagination Detection:
- Look at the BOTTOM of the main content area for pagination controls ("Previous", page numbers, "Next").
- If you see a "Next" link OR a page number higher than the current page, there ARE more pages.
- Extract the href from the "Next" link as nextPageUrl, e.g. {section.base_url}page/2/
- ONLY return null for nextPageUrl if there is definitively NO "Next" link and NO higher page numbers visible.

Return a single JSON object with:
- posts: an array of post summary objects as described above
- nextPageUrl: a string URL (absolute or relative) for the next page, or null ONLY if this is definitively the last page."""


def detail_instruction(section: Section, post_url: str) -> str:
    return f"""You are on a single blog post page (URL: {post_url}).
Extract exactly one object for the main blog post on this page with:
- slug: a URL-safe slug based on the post URL path (use the last non-empty path segment)
- title: the blog post title
- url: the absolute URL of this post
- date: the published date if visible, as a string
- section: the section identifier (use "{section.slug}")
- categories: a list of category names shown for this post (if any)
- tags: a list of tag names shown for this post (if any)
- markdown: the main article content converted to Markdown, excluding global headers, footers, sidebars, and subscription boxes.

Return only this JSON object matching the schema."""


def diagnostic_instruction(page_url: str) -> str:
    return f"""DEBUG ONLY: Without enforcing a strict schema, inspect this blog category page (URL: {page_url}).
Return a JSON object describing all blog-like or post-like items you see in the main content area. For each item, include the title text, any link URL, and any nearby date text. Also include a short note on why you considered it post-like."""
