"""Run-scoped set of detail URLs that must not be extracted again."""

from __future__ import annotations

import threading
from typing import Iterable


class DedupSet:
    """Grow-only set with an atomic check-and-insert.

    One instance is shared by every section of a run so a URL cross-listed in
    two sections is extracted once.  The lock makes :meth:`claim` safe if
    sections are ever crawled from several threads.
    """

    def __init__(self, seed: Iterable[str] = ()) -> None:
        self._urls: set[str] = set(seed)
        self._lock = threading.Lock()

    def claim(self, url: str) -> bool:
        """Add *url* and return ``True``, or return ``False`` if already present."""
        with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)
