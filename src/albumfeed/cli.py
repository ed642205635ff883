"""CLI entry point for albumfeed."""

import asyncio
import json
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from albumfeed.config.logging import setup_logging
from albumfeed.config.manager import ConfigManager
from albumfeed.config.schema import GlobalConfig
from albumfeed.feeds.fetcher import FeedFetcher
from albumfeed.feeds.models import AlbumFeed, PublisherFeed
from albumfeed.feeds.store import FeedStore
from albumfeed.pipeline.orchestrator import IngestionOptions, IngestionOrchestrator, IngestionResult
from albumfeed.playlist import build_playlist, render_rss
from albumfeed.snapshot import SnapshotStore
from albumfeed.utils.display import format_duration, truncate_url
from albumfeed.utils.errors import AlbumFeedError, NotFoundError, StorageError, ValidationError

app = typer.Typer(
    name="albumfeed",
    help="Manage music RSS feeds and turn them into album and publisher data",
    no_args_is_help=True,
)
console = Console()


def _load() -> tuple[GlobalConfig, ConfigManager]:
    manager = ConfigManager()
    return manager.load_config(), manager


def _store() -> FeedStore:
    config, manager = _load()
    return FeedStore(manager.feeds_file(config))


def _fail(error: AlbumFeedError) -> None:
    console.print(f"[red]✗[/red] {error}")
    if isinstance(error, ValidationError) and error.suggestion:
        console.print(f"[dim]  {error.suggestion}[/dim]")
    sys.exit(1)


async def _ingest(
    config: GlobalConfig,
    feeds: list[AlbumFeed | PublisherFeed],
    order: str = "store",
) -> IngestionResult:
    options = IngestionOptions(max_concurrency=config.fetch.max_concurrency, order=order)  # type: ignore[arg-type]
    async with FeedFetcher(
        timeout=config.fetch.timeout_seconds,
        user_agent=config.fetch.user_agent,
    ) as fetcher:
        return await IngestionOrchestrator(fetcher, options=options).run(feeds)


def _print_failures(result: IngestionResult) -> None:
    for failure in result.failures:
        console.print(
            f"[yellow]⚠[/yellow] {failure.feed_id}: {failure.stage} failed "
            f"([dim]{failure.error_kind}: {failure.message}[/dim])"
        )


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose (DEBUG) logging"
    ),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file"
    ),
) -> None:
    """albumfeed - music RSS feed ingestion."""
    level = None
    if ctx.invoked_subcommand not in (None, "version"):
        try:
            level = ConfigManager().load_config().log_level
        except AlbumFeedError:
            # The command loads the config again and reports the error itself
            level = None
    setup_logging(verbose=verbose, log_file=log_file, level=level)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    from albumfeed import __version__

    console.print(f"[bold cyan]albumfeed[/bold cyan] v{__version__}")


@app.command("add")
def add_feed(
    url: str = typer.Argument(..., help="RSS feed URL"),
    feed_type: str = typer.Option("album", "--type", "-t", help="Feed type: album or publisher"),
    title: str | None = typer.Option(None, "--title", help="Display title"),
    priority: str = typer.Option("core", "--priority", "-p", help="core, extended or low"),
) -> None:
    """Subscribe to a feed.

    Examples:
        albumfeed add https://example.com/feed.xml

        albumfeed add https://example.com/artist.xml --type publisher
    """
    try:
        feed = _store().add(url, feed_type, title=title, priority=priority)
        console.print(
            f"[green]✓[/green] Feed '[bold]{feed.id}[/bold]' added ({feed.type}, {feed.priority})"
        )
    except AlbumFeedError as e:
        _fail(e)


@app.command("list")
def list_feeds(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include inactive feeds"),
) -> None:
    """List subscribed feeds."""
    try:
        store = _store()
        feeds = store.list() if show_all else store.list_active()

        if not feeds:
            console.print("[yellow]No feeds configured yet.[/yellow]")
            console.print("\nAdd a feed: [cyan]albumfeed add <url>[/cyan]")
            return

        table = Table(title="[bold]Subscribed Feeds[/bold]")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Type", style="magenta")
        table.add_column("Priority", style="green")
        table.add_column("Status", style="yellow")
        table.add_column("URL", style="blue")

        for feed in feeds:
            table.add_row(
                feed.id,
                feed.title,
                feed.type,
                feed.priority,
                feed.status,
                truncate_url(feed.original_url, max_length=50),
            )

        console.print(table)
        console.print(f"\n[dim]Total: {len(feeds)} feed(s)[/dim]")

    except AlbumFeedError as e:
        _fail(e)


@app.command("remove")
def remove_feed(
    feed_id: str = typer.Argument(..., help="Feed ID to remove"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
) -> None:
    """Unsubscribe from a feed.

    Examples:
        albumfeed remove example-com-feed-xml --force
    """
    try:
        store = _store()

        try:
            feed = store.get(feed_id)
        except NotFoundError:
            console.print(f"[red]✗[/red] Feed '[bold]{feed_id}[/bold]' not found")
            sys.exit(1)

        if not force:
            console.print(f"\nFeed: [bold]{feed.title}[/bold]")
            console.print(f"URL:  [dim]{feed.original_url}[/dim]")
            if not typer.confirm("\nAre you sure you want to remove this feed?"):
                console.print("[yellow]Cancelled[/yellow]")
                return

        store.remove(feed_id)
        console.print(f"[green]✓[/green] Feed '[bold]{feed_id}[/bold]' removed")

    except AlbumFeedError as e:
        _fail(e)


@app.command("update")
def update_feed(
    feed_id: str = typer.Argument(..., help="Feed ID to change"),
    status: str | None = typer.Option(None, "--status", "-s", help="active or inactive"),
    priority: str | None = typer.Option(None, "--priority", "-p", help="core, extended or low"),
) -> None:
    """Change a feed's status or priority."""
    if status is None and priority is None:
        console.print("[red]✗[/red] Nothing to update: pass --status and/or --priority")
        sys.exit(1)

    try:
        feed = _store().update(feed_id, status=status, priority=priority)
        console.print(
            f"[green]✓[/green] Feed '[bold]{feed.id}[/bold]' is now {feed.status}, {feed.priority}"
        )
    except AlbumFeedError as e:
        _fail(e)


@app.command("seed")
def seed_feeds() -> None:
    """Add the default feeds that are missing."""
    try:
        added = _store().seed_defaults()
        console.print(f"[green]✓[/green] Seeded {added} default feed(s)")
    except AlbumFeedError as e:
        _fail(e)


@app.command("albums")
def show_albums(
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
    from_snapshot: bool = typer.Option(
        False, "--snapshot", help="Read the last snapshot instead of fetching feeds"
    ),
    by_priority: bool = typer.Option(False, "--by-priority", help="Order core feeds first"),
) -> None:
    """Fetch and parse active feeds and show the resulting albums."""
    try:
        config, manager = _load()

        if from_snapshot:
            albums = asyncio.run(SnapshotStore(manager.snapshot_file(config)).albums())
            result = None
        else:
            feeds = FeedStore(manager.feeds_file(config)).list_active()
            result = asyncio.run(_ingest(config, feeds, "priority" if by_priority else "store"))
            albums = result.albums

        if as_json:
            print(json.dumps([album.to_json_dict() for album in albums], indent=2))
            return

        if not albums:
            console.print("[yellow]No albums found.[/yellow]")
        else:
            table = Table(title="[bold]Albums[/bold]")
            table.add_column("Title", style="cyan")
            table.add_column("Artist", style="green")
            table.add_column("Tracks", justify="right")
            table.add_column("Length", justify="right")
            table.add_column("Feed", style="dim")

            for album in albums:
                total = sum(track.duration for track in album.tracks)
                table.add_row(
                    album.title,
                    album.artist or "—",
                    str(len(album.tracks)),
                    format_duration(total),
                    album.feed_id or "—",
                )
            console.print(table)

        if result is not None:
            _print_failures(result)

    except AlbumFeedError as e:
        _fail(e)


@app.command("publishers")
def show_publishers(
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Show publishers from the last snapshot."""
    try:
        config, manager = _load()
        publishers = asyncio.run(SnapshotStore(manager.snapshot_file(config)).publishers())

        if as_json:
            print(json.dumps([p.to_json_dict() for p in publishers], indent=2))
            return

        if not publishers:
            console.print("[yellow]No publishers in snapshot.[/yellow]")
            return

        table = Table(title="[bold]Publishers[/bold]")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Items", justify="right")
        for publisher in publishers:
            table.add_row(publisher.id or "—", publisher.title, str(publisher.item_count))
        console.print(table)

    except AlbumFeedError as e:
        _fail(e)


@app.command("publisher")
def show_publisher(
    key: str = typer.Argument(..., help="Publisher feed ID or feedGuid"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a summary"),
) -> None:
    """Show one publisher from the last snapshot.

    Examples:
        albumfeed publisher example-com-artist-xml

        albumfeed publisher 5a95f9d8-35e3-51f5-a269-ba1df36b4bd8 --json
    """
    try:
        config, manager = _load()
        publisher = asyncio.run(SnapshotStore(manager.snapshot_file(config)).publisher(key))

        if as_json:
            print(json.dumps(publisher.to_json_dict(), indent=2))
            return

        info = publisher.publisher_info
        console.print(f"[bold cyan]{publisher.title}[/bold cyan] ({publisher.id})")
        if info.artist:
            console.print(f"Artist: {info.artist}")
        if info.feed_guid:
            console.print(f"GUID:   [dim]{info.feed_guid}[/dim]")

        table = Table(title=f"[bold]{publisher.item_count} item(s)[/bold]")
        table.add_column("Feed GUID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("URL", style="blue")
        for item in publisher.publisher_items:
            table.add_row(
                item.feed_guid or "—",
                item.title or "—",
                truncate_url(item.feed_url, max_length=50) if item.feed_url else "—",
            )
        console.print(table)

    except AlbumFeedError as e:
        _fail(e)


@app.command("playlist")
def export_playlist(
    feed_id: str | None = typer.Option(None, "--feed-id", help="Only songs from this feed"),
    output_format: str = typer.Option("rss", "--format", "-f", help="rss or json"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write to file instead of stdout"
    ),
) -> None:
    """Export songs from the last snapshot as an RSS or JSON playlist.

    Examples:
        albumfeed playlist -o playlist.xml

        albumfeed playlist --feed-id example-com-album-xml --format json
    """
    if output_format not in ("rss", "json"):
        console.print("[red]✗[/red] Format must be one of: rss, json")
        sys.exit(1)

    try:
        config, manager = _load()
        albums = asyncio.run(SnapshotStore(manager.snapshot_file(config)).albums())
        playlist = build_playlist(albums, feed_id=feed_id)

        if output_format == "json":
            content = json.dumps(playlist.to_json_dict(), indent=2) + "\n"
        else:
            content = render_rss(playlist).decode("utf-8") + "\n"

        if output is None:
            print(content, end="")
            return

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write playlist {output}: {e}") from e
        console.print(
            f"[green]✓[/green] Playlist with {playlist.total_tracks} track(s) written to {output}"
        )

    except AlbumFeedError as e:
        _fail(e)


@app.command("snapshot")
def write_snapshot() -> None:
    """Run an ingestion pass and save it to parsed-feeds.json."""
    try:
        config, manager = _load()
        feeds = FeedStore(manager.feeds_file(config)).list_active()

        async def run() -> IngestionResult:
            result = await _ingest(config, feeds)
            await SnapshotStore(manager.snapshot_file(config)).write(feeds, result)
            return result

        result = asyncio.run(run())
        console.print(
            f"[green]✓[/green] Snapshot written: {len(result.items)} parsed, "
            f"{len(result.failures)} failed"
        )
        _print_failures(result)

    except AlbumFeedError as e:
        _fail(e)


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int | None = typer.Option(None, "--port", help="Port (default from config)"),
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from albumfeed.api.app import create_app

    try:
        config, _ = _load()
    except AlbumFeedError as e:
        _fail(e)
        return

    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    app()
