"""Centralised settings for the archive harvester.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from harvester.crawler.models import Section

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _positive_int_env(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back on junk."""
    raw = os.environ.get(name, "")
    try:
        value = int(raw, 10)
    except ValueError:
        return default
    return value if value > 0 else default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("HARVEST_WORKSPACE", "data"))
    )
    reports_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("HARVEST_REPORTS_DIR", "reports"))
    )
    sections_file: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["HARVEST_SECTIONS_FILE"])
            if os.environ.get("HARVEST_SECTIONS_FILE")
            else None
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "harvest.db"

    @property
    def output_root(self) -> Path:
        """Directory that receives one markdown file per harvested post."""
        return self.workspace_dir / "posts"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Crawl policy
    # ------------------------------------------------------------------
    max_pages_per_section: int = field(
        default_factory=lambda: _positive_int_env("MAX_PAGES_PER_SECTION", 10)
    )
    detail_max_attempts: int = field(
        default_factory=lambda: _positive_int_env("DETAIL_MAX_ATTEMPTS", 3)
    )
    retry_backoff_seconds: float = field(
        default_factory=lambda: float(os.environ.get("RETRY_BACKOFF_SECONDS", "1.0"))
    )
    session_error_threshold: int = field(
        default_factory=lambda: _positive_int_env("SESSION_ERROR_THRESHOLD", 3)
    )

    # ------------------------------------------------------------------
    # Extraction backend: browser
    # ------------------------------------------------------------------
    browser_headless: bool = field(
        default_factory=lambda: _bool_env("BROWSER_HEADLESS", True)
    )
    browser_cdp_url: Optional[str] = field(
        default_factory=lambda: os.environ.get("BROWSER_CDP_URL") or None
    )
    navigation_timeout: float = field(
        default_factory=lambda: float(os.environ.get("NAVIGATION_TIMEOUT", "30.0"))
    )
    page_settle_seconds: float = field(
        default_factory=lambda: float(os.environ.get("PAGE_SETTLE_SECONDS", "3.0"))
    )

    # ------------------------------------------------------------------
    # Extraction backend: language model
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "ollama")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "qwen2.5:14b")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    )
    page_context_chars: int = field(
        default_factory=lambda: _positive_int_env("PAGE_CONTEXT_CHARS", 60000)
    )

    # ------------------------------------------------------------------
    # Embedding model
    # ------------------------------------------------------------------
    embedding_provider: str = field(
        default_factory=lambda: os.environ.get("EMBEDDING_PROVIDER", "ollama")
    )
    ollama_embed_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_EMBED_MODEL", "embeddinggemma:latest")
    )
    openai_embed_model: str = field(
        default_factory=lambda: os.environ.get(
            "OPENAI_EMBED_MODEL", "text-embedding-3-small"
        )
    )
    embedding_dim: int = field(
        default_factory=lambda: int(os.environ.get("EMBEDDING_DIM", "768"))
    )

    # ------------------------------------------------------------------
    # RAG chunking
    # ------------------------------------------------------------------
    chunk_size: int = field(
        default_factory=lambda: int(os.environ.get("CHUNK_SIZE", "2000"))
    )
    chunk_overlap: int = field(
        default_factory=lambda: int(os.environ.get("CHUNK_OVERLAP", "200"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    # ------------------------------------------------------------------
    # Error reporting (Sentry; off unless a DSN is set)
    # ------------------------------------------------------------------
    sentry_dsn: Optional[str] = field(
        default_factory=lambda: os.environ.get("SENTRY_DSN") or None
    )
    sentry_environment: str = field(
        default_factory=lambda: os.environ.get("SENTRY_ENVIRONMENT", "development")
    )
    sentry_traces_sample_rate: float = field(
        default_factory=lambda: float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "0.2"))
    )

    @property
    def active_chat_model(self) -> str:
        """Name of the chat model the configured provider will use."""
        if self.llm_provider == "openai":
            return self.openai_chat_model
        return self.ollama_chat_model

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

DEFAULT_SECTIONS: tuple[Section, ...] = (
    Section(name="Dr. Diet", slug="dr-diet",
            base_url="https://www.paulcheksblog.com/category/diet/"),
    Section(name="Dr. Quiet", slug="dr-quiet",
            base_url="https://www.paulcheksblog.com/category/quiet/"),
    Section(name="Dr. Movement", slug="dr-movement",
            base_url="https://www.paulcheksblog.com/category/movement/"),
    Section(name="Dr. Happiness", slug="dr-happiness",
            base_url="https://www.paulcheksblog.com/category/happiness/"),
)


def load_sections(path: Optional[Path] = None) -> list[Section]:
    """Return the sections to harvest.

    Args:
        path: Optional JSON file holding a list of
            ``{"name": ..., "slug": ..., "baseUrl": ...}`` objects.  Falls back
            to ``settings.sections_file`` and then to :data:`DEFAULT_SECTIONS`.

    Raises:
        ValueError: If the file is not a list of complete section objects.
    """
    source = path or settings.sections_file
    if source is None:
        return list(DEFAULT_SECTIONS)

    raw = json.loads(Path(source).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Sections file {source} must contain a JSON list")

    sections: list[Section] = []
    for entry in raw:
        try:
            base_url = entry.get("baseUrl") or entry["base_url"]
            sections.append(
                Section(
                    name=entry["name"],
                    slug=entry["slug"],
                    base_url=base_url if base_url.endswith("/") else base_url + "/",
                )
            )
        except (AttributeError, KeyError, TypeError) as exc:
            raise ValueError(f"Invalid section entry {entry!r}: {exc}") from exc
    return sections


# Module-level singleton: import this everywhere:
#   from harvester.config import settings
settings = Settings()
