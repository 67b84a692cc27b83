"""
Command-line interface for Feed Archive.

Uses Typer for commands and Rich for output. Loads a .env file so the
FEED_ARCHIVE_* overrides can live next to the data directory. Every command
opens one ArchiveService, so all network access in a run shares a single
rate-limited queue.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from .config import AppConfig, load_config
from .core.types import CanonicalItem
from .errors import ArchiveError, error_payload
from .service import ArchiveService
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False, help="Fetch, cache and archive RSS/Atom feeds.")
console = Console()

T = TypeVar("T")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, help="YAML config file."),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Override storage.data_dir."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
):
    """Feed Archive command line."""
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if data_dir is not None:
        cfg.storage.data_dir = str(data_dir)
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file
    setup_logging(cfg.logging, Path(cfg.storage.data_dir))
    ctx.obj = cfg


def _run(ctx: typer.Context, action: Callable[[ArchiveService], Awaitable[T]]) -> T:
    """Run an async action against a freshly opened service.

    Pipeline errors are printed as the structured error payload and end the
    command with exit status 1.
    """
    cfg: AppConfig = ctx.obj

    async def runner() -> T:
        async with ArchiveService.open(cfg) as service:
            return await action(service)

    try:
        return asyncio.run(runner())
    except ArchiveError as exc:
        console.print_json(data=error_payload(exc))
        raise typer.Exit(code=1) from exc


def _items_table(title: str, items: list[CanonicalItem]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Published", no_wrap=True)
    table.add_column("Feed")
    table.add_column("Title")
    table.add_column("Article ID", no_wrap=True)
    table.add_column("Flags", no_wrap=True)
    for item in items:
        flags = ("R" if item.is_read else "-") + ("*" if item.is_favorite else "-")
        table.add_row(
            item.published_at.strftime("%Y-%m-%d %H:%M") if item.published_at else "",
            item.feed_name or item.feed_title or "",
            item.title,
            (item.article_id or "")[:12],
            flags,
        )
    return table


@app.command()
def feeds(ctx: typer.Context):
    """List the live feed set."""

    async def action(service: ArchiveService) -> None:
        table = Table(title="Feeds")
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("URL")
        for index, sub in enumerate(service.reader.feeds, start=1):
            table.add_row(str(index), sub.name, sub.url)
        console.print(table)

    _run(ctx, action)


@app.command()
def add(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Feed URL."),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name."),
):
    """Validate and add a feed."""

    async def action(service: ArchiveService) -> bool:
        return await service.add_feed(url, name)

    added = _run(ctx, action)
    console.print(f"{'Added' if added else 'Updated'}: {url}")


@app.command("import-opml")
def import_opml(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, readable=True, help="OPML file."),
):
    """Add every feed listed in an OPML file."""
    payload = file.read_bytes()

    async def action(service: ArchiveService) -> int:
        return await service.load_subscriptions(payload)

    added = _run(ctx, action)
    console.print(f"Imported {added} new feed(s) from {file}")


@app.command()
def read(
    ctx: typer.Context,
    index: int = typer.Argument(..., help="1-based feed index from `feeds`."),
):
    """Fetch one feed and list its items."""

    async def action(service: ArchiveService) -> None:
        await service.ensure_default_feeds()
        feeds_ = service.reader.feeds
        if not 1 <= index <= len(feeds_):
            console.print(f"[red]No feed #{index}; {len(feeds_)} feed(s) known[/red]")
            raise typer.Exit(code=2)
        sub = feeds_[index - 1]
        feed = await service.fetch_feed(sub.url)
        if feed is None:
            console.print_json(data={"ok": False, "error": "Feed unavailable", "url": sub.url})
            raise typer.Exit(code=1)
        for item in feed.items:
            item.feed_name = sub.name
        console.print(_items_table(feed.title, feed.items))

    _run(ctx, action)


@app.command("all")
def all_articles(
    ctx: typer.Context,
    limit: int | None = typer.Option(None, "--limit", "-l", help="Nominal article count."),
):
    """Aggregate recent items across all feeds."""

    async def action(service: ArchiveService) -> list[CanonicalItem]:
        await service.ensure_default_feeds()
        return await service.get_all_articles(limit)

    items = _run(ctx, action)
    console.print(_items_table(f"{len(items)} article(s)", items))


@app.command("by-date")
def by_date(
    ctx: typer.Context,
    day: str | None = typer.Option(None, "--date", "-d", help="YYYY-MM-DD (UTC); default today."),
    window: int = typer.Option(1, "--window", "-w", min=1, help="Window length in days."),
):
    """List items published on a given UTC day."""
    target = date.fromisoformat(day) if day else datetime.now(timezone.utc).date()

    async def action(service: ArchiveService) -> list[CanonicalItem]:
        await service.ensure_default_feeds()
        return await service.get_articles_by_date(target, window)

    items = _run(ctx, action)
    console.print(_items_table(f"{target.isoformat()} (+{window - 1}d)", items))


@app.command()
def materialize(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Article URL."),
    title: str | None = typer.Option(None, "--title", "-t"),
    feed_url: str | None = typer.Option(None, "--feed-url"),
    published_at: str | None = typer.Option(None, "--published-at", help="ISO timestamp."),
):
    """Save an article as a Markdown document."""
    published = datetime.fromisoformat(published_at) if published_at else None
    if published is not None and published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)

    async def action(service: ArchiveService) -> Any:
        return await service.materialize_article(
            url, feed_url=feed_url, title=title, published_at=published
        )

    result = _run(ctx, action)
    console.print_json(
        data={"ok": True, "articleId": result.article_id, "markdownPath": result.markdown_path}
    )


@app.command()
def state(
    ctx: typer.Context,
    article_id: str = typer.Argument(...),
    is_read: bool | None = typer.Option(None, "--read/--unread"),
    is_favorite: bool | None = typer.Option(None, "--favorite/--unfavorite"),
):
    """Set read/favorite flags; omitted flags keep their value."""

    async def action(service: ArchiveService) -> dict[str, Any]:
        view = await service.set_article_state(article_id, is_read, is_favorite)
        return view.as_dict()

    console.print_json(data={"ok": True, **_run(ctx, action)})


@app.command()
def note(
    ctx: typer.Context,
    article_id: str = typer.Argument(...),
    title: str | None = typer.Option(None, "--title", "-t"),
    content: str = typer.Option("", "--content", "-m"),
):
    """Write a Markdown note for an article."""

    async def action(service: ArchiveService) -> dict[str, Any]:
        return await service.add_note(article_id, title, content)

    console.print_json(data=_run(ctx, action))


@app.command()
def notes(ctx: typer.Context, article_id: str = typer.Argument(...)):
    """List the notes of an article, newest first."""

    async def action(service: ArchiveService) -> dict[str, Any]:
        return await service.list_notes(article_id)

    console.print_json(data=_run(ctx, action))


@app.command()
def activity(
    ctx: typer.Context,
    limit: int = typer.Option(50, "--limit", "-l"),
    offset: int = typer.Option(0, "--offset"),
):
    """Show the activity timeline, newest first."""

    async def action(service: ArchiveService) -> dict[str, Any]:
        return await service.list_activity(limit, offset)

    console.print_json(data=_run(ctx, action))


@app.command()
def export(
    ctx: typer.Context,
    days: int = typer.Option(7, "--days", help="Period in days (1-365)."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to file instead of stdout."),
):
    """Export recent activity as a Markdown review."""

    async def action(service: ArchiveService) -> str:
        return await service.export_markdown(days)

    markdown = _run(ctx, action)
    if output is None:
        console.print(markdown, markup=False, highlight=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(markdown, encoding="utf-8")
    console.print(f"Review written: {output}")


if __name__ == "__main__":
    app()
