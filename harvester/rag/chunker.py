"""Heading-aware chunker for harvested posts.

Strategy: split the markdown body on ``#`` headings, then run the recursive
character splitter (``\\n\\n`` -> ``\\n`` -> ``" "``) over each heading's
section and merge the pieces into overlapping chunks of at most *chunk_size*
characters.  Every chunk remembers the heading it sits under.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)


@dataclass(frozen=True)
class TextChunk:
    content: str
    heading: Optional[str]
    token_count: int


def estimate_tokens(text: str) -> int:
    """Rough token estimate: four characters per token."""
    return math.ceil(len(text) / 4)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _recursive_split(text: str, separators: list[str], chunk_size: int) -> list[str]:
    """Split *text* into pieces that are each at most *chunk_size* characters.

    Tries separators in order and falls back to a hard cut when none of them
    breaks the text small enough.
    """
    if len(text) <= chunk_size:
        return [text] if text.strip() else []

    for idx, sep in enumerate(separators):
        if sep in text:
            remaining_seps = separators[idx + 1 :]
            result: list[str] = []
            for part in text.split(sep):
                stripped = part.strip()
                if not stripped:
                    continue
                if len(stripped) <= chunk_size:
                    result.append(stripped)
                else:
                    result.extend(_recursive_split(stripped, remaining_seps, chunk_size))
            return result

    return [
        text[i : i + chunk_size]
        for i in range(0, len(text), chunk_size)
        if text[i : i + chunk_size].strip()
    ]


def split_by_headings(markdown: str) -> list[tuple[Optional[str], str]]:
    """Return ``(heading, body)`` pairs; text before the first heading has ``None``."""
    sections: list[tuple[Optional[str], str]] = []
    matches = list(_HEADING_RE.finditer(markdown))
    if not matches:
        body = markdown.strip()
        return [(None, body)] if body else []

    preamble = markdown[: matches[0].start()].strip()
    if preamble:
        sections.append((None, preamble))
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(markdown)
        body = markdown[m.end() : end].strip()
        if body:
            sections.append((m.group(2).strip(), body))
    return sections


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def chunk_text(
    text: str,
    chunk_size: int = 2000,
    overlap: int = 200,
) -> list[str]:
    """Split *text* into overlapping, size-bounded chunks.

    Args:
        text: The raw text to chunk.
        chunk_size: Maximum number of **characters** per chunk.
        overlap: Characters from the end of the previous chunk that seed the
            next one, trimmed to a word boundary.

    Returns:
        A list of non-empty string chunks.  Returns ``[]`` for blank input.
    """
    if not text.strip():
        return []

    pieces = _recursive_split(text.strip(), ["\n\n", "\n", " "], chunk_size)

    chunks: list[str] = []
    buf: list[str] = []

    for piece in pieces:
        tentative = "\n\n".join(buf + [piece]) if buf else piece
        if len(tentative) > chunk_size and buf:
            chunk = "\n\n".join(buf)
            chunks.append(chunk)

            if len(chunk) > overlap:
                cut = len(chunk) - overlap
                space_idx = chunk.find(" ", cut)
                overlap_text = chunk[space_idx + 1 :] if space_idx != -1 else chunk[cut:]
            else:
                overlap_text = chunk

            buf = [overlap_text] if overlap and overlap_text.strip() else []

        buf.append(piece)

    if buf:
        chunks.append("\n\n".join(buf))

    return [c for c in chunks if c.strip()]


def chunk_markdown(
    markdown: str,
    chunk_size: int = 2000,
    overlap: int = 200,
) -> list[TextChunk]:
    """Chunk a post body section by section, keeping each chunk's heading."""
    return [
        TextChunk(content=piece, heading=heading, token_count=estimate_tokens(piece))
        for heading, body in split_by_headings(markdown)
        for piece in chunk_text(body, chunk_size=chunk_size, overlap=overlap)
    ]
