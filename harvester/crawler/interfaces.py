"""Contracts for the collaborators the crawler talks to.

The crawler only ever sees these protocols; concrete implementations live in
``harvester.browser`` (backend), ``harvester.sinks`` (record sinks) and
``harvester.telemetry`` (metrics and report files).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from harvester.crawler.models import PostDetail


@dataclass(frozen=True)
class ExtractMetric:
    """One timing/outcome event, emitted for every backend call."""

    run_id: str
    section: str
    kind: str  # "category" | "post" | "debug"
    url: str
    duration_ms: int
    status: str  # "ok" | "invalid-shape" | "error"
    error_type: Optional[str] = None
    session_error: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@runtime_checkable
class ExtractionBackend(Protocol):
    """One provisioned extraction capability bound to a single browsing context."""

    session_id: Optional[str]

    def start(self) -> None: ...

    def extract(
        self,
        instruction: str,
        schema: Optional[type[BaseModel]],
        target_url: str,
    ) -> Any:
        """Navigate to *target_url* if needed and return a best-effort payload.

        *schema* is ``None`` for schema-less (diagnostic) extraction.
        """
        ...

    def close(self) -> None: ...

    def metrics(self) -> dict[str, Any]: ...

    def history(self) -> list[dict[str, Any]]: ...


class RecordSink(Protocol):
    def accept(self, detail: PostDetail) -> None: ...


class TelemetrySink(Protocol):
    """Write-and-forget observer; implementations must not raise."""

    def emit_metric(self, metric: ExtractMetric) -> None: ...

    def write_debug_payload(
        self, section: str, page_number: int, url: str, payload: Any
    ) -> None: ...
