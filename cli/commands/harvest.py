"""Harvest commands: list sections and run a full harvest."""

from __future__ import annotations

import signal
import threading
from typing import Optional

import typer

from harvester.browser import BrowserSession
from harvester.config import load_sections, settings
from harvester.crawler.models import RunStatus, Section
from harvester.crawler.report import create_run_id
from harvester.crawler.retry import RetryPolicy
from harvester.crawler.run import run_harvest
from harvester.db import get_connection, init_db
from harvester.db.posts import get_existing_post_urls
from harvester.sinks import CompositeSink, MarkdownSink, StoreSink
from harvester.telemetry import RunTelemetry


def sections_cmd() -> None:
    """List the sections a harvest will walk."""
    try:
        sections = load_sections()
    except (OSError, ValueError) as exc:
        typer.echo(f"[sections] {exc}")
        raise typer.Exit(1)
    for s in sections:
        typer.echo(f"  {s.slug:<16} {s.name:<16} {s.base_url}")


def _select(sections: list[Section], slugs: Optional[list[str]]) -> list[Section]:
    if not slugs:
        return sections
    by_slug = {s.slug: s for s in sections}
    unknown = [slug for slug in slugs if slug not in by_slug]
    if unknown:
        typer.echo(f"[run] Unknown section(s): {', '.join(unknown)}")
        typer.echo(f"[run] Known sections: {', '.join(by_slug)}")
        raise typer.Exit(1)
    return [by_slug[slug] for slug in slugs]


def run_cmd(
    max_pages: Optional[int] = typer.Option(
        None, "--max-pages", min=1, help="Listing pages per section (default: MAX_PAGES_PER_SECTION)."
    ),
    section: Optional[list[str]] = typer.Option(
        None, "--section", help="Only harvest this section slug (repeatable)."
    ),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window."),
    markdown: bool = typer.Option(
        True, "--markdown/--no-markdown", help="Also write one markdown file per post."
    ),
) -> None:
    """Harvest every configured section into the database."""
    try:
        sections = _select(load_sections(), section)
    except (OSError, ValueError) as exc:
        typer.echo(f"[run] {exc}")
        raise typer.Exit(1)

    pages = max_pages or settings.max_pages_per_section
    run_id = create_run_id(pages)
    settings.ensure_workspace()

    conn = get_connection()
    init_db(conn)
    # The store seeds the next run's dedup set, so it is written last.
    sink = (
        CompositeSink(MarkdownSink(settings.output_root), StoreSink(conn))
        if markdown
        else StoreSink(conn)
    )
    telemetry = RunTelemetry(settings.reports_dir, run_id)

    # First Ctrl-C stops after the current post; the reports still get written.
    cancel = threading.Event()

    def _request_stop(signum, frame) -> None:  # noqa: ARG001
        typer.echo("\n[run] Stop requested; finishing the current post …")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _request_stop)

    typer.echo(f"[run] Run {run_id}: {len(sections)} section(s), up to {pages} page(s) each")
    try:
        report = run_harvest(
            sections,
            backend_factory=lambda _section: BrowserSession(headless=False if headed else None),
            sink=sink,
            telemetry=telemetry,
            existing_urls=get_existing_post_urls(conn),
            max_pages=pages,
            retry_policy=RetryPolicy(
                max_attempts=settings.detail_max_attempts,
                backoff_unit=settings.retry_backoff_seconds,
            ),
            session_error_threshold=settings.session_error_threshold,
            run_id=run_id,
            config={"model": settings.active_chat_model, "llmProvider": settings.llm_provider},
            cancel=cancel,
        )
    finally:
        signal.signal(signal.SIGINT, previous)
        conn.close()

    totals = report.totals
    for slug, status in report.section_status.items():
        stats = report.sections[slug]
        typer.echo(
            f"  {slug:<16} {status.value:<18} pages={stats.pages_visited} "
            f"saved={stats.details_saved} failed={stats.details_failed}"
        )
    typer.echo(
        f"[run] {report.status.value}: saved {totals.details_saved} post(s), "
        f"{totals.details_failed} failed, {totals.pages_visited} listing page(s)"
    )
    typer.echo(f"[run] Reports in {settings.reports_dir}")
    if report.status is RunStatus.ABORTED:
        raise typer.Exit(1)
