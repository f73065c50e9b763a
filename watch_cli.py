# watch_cli.py
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from watch_core import CommandResult, ConfigError, WatchItem, WatchService, load_config, service_from_config

__version__ = "0.0.1"

logger = logging.getLogger(__name__)

EXIT_CONFIG = 1
EXIT_INVALID = 2
EXIT_REMOTE = 3

NOT_FOUND_MSG = "Item not found in your watchlist."


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def item_to_display_text(it: WatchItem) -> str:
    status = "Watched" if it.watched else "Unwatched"
    return f" {it.id} | {it.title} - {status}"


def get_service(ctx: click.Context) -> WatchService:
    """Build the service on first use so --help never needs a config file."""
    obj = ctx.ensure_object(dict)
    if obj.get("service") is None:
        try:
            config = load_config(obj.get("config_path"))
        except ConfigError as e:
            click.echo(f"\n{e}\n", err=True)
            ctx.exit(EXIT_CONFIG)
        obj["service"] = service_from_config(config)
    return obj["service"]


def finish(ctx: click.Context, result: CommandResult) -> None:
    if result.status == "invalid":
        click.echo(f"\n{result.message}\n", err=True)
        ctx.exit(EXIT_INVALID)
    if result.status == "error":
        click.echo(f"\n{result.message}\n", err=True)
        ctx.exit(EXIT_REMOTE)


def print_items(header: str, items: list[WatchItem]) -> None:
    click.echo(f"\n{header}\n")
    for it in items:
        click.echo(item_to_display_text(it))
    click.echo("")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    envvar="WATCHLIST_CONFIG",
    default=None,
    help="Path to config file (default: ~/watchlist.yml)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """Movie & Series Watchlist CLI."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config_path", config_path)


@main.command()
@click.argument("title")
@click.pass_context
def add(ctx: click.Context, title: str):
    """Add a movie or series to your watchlist."""
    result = get_service(ctx).add(title)
    if result.status == "exists":
        click.echo(f"\n{result.message}\n")
    elif result.status == "ok":
        click.echo(f"\nSuccessfully added to your watchlist! (id {result.item.id})\n")
    finish(ctx, result)


@main.command(name="list")
@click.pass_context
def list_(ctx: click.Context):
    """Display your watchlist."""
    result = get_service(ctx).list_items()
    if result.status == "empty":
        click.echo("\nYour watchlist is empty. Start adding movies!\n")
    elif result.status == "ok":
        print_items("Your Watchlist:", result.items)
    finish(ctx, result)


@main.command()
@click.argument("item_id", metavar="ID")
@click.pass_context
def toggle(ctx: click.Context, item_id: str):
    """Mark a movie as watched/unwatched."""
    result = get_service(ctx).toggle(item_id)
    if result.status == "not_found":
        click.echo(f"\n{NOT_FOUND_MSG}\n")
    elif result.status == "ok":
        marked = "Marked as Watched" if result.item.watched else "Marked as Unwatched"
        click.echo(f"\nStatus updated: {marked}\n")
    finish(ctx, result)


@main.command()
@click.argument("item_id", metavar="ID")
@click.pass_context
def remove(ctx: click.Context, item_id: str):
    """Remove a movie from your watchlist."""
    result = get_service(ctx).remove(item_id)
    if result.status == "not_found":
        click.echo(f"\n{NOT_FOUND_MSG}\n")
    elif result.status == "ok":
        click.echo("\nSuccessfully removed from your watchlist!\n")
    finish(ctx, result)


@main.command()
@click.argument("query")
@click.option("--limit", type=int, default=None, help="Maximum number of matches to show")
@click.pass_context
def search(ctx: click.Context, query: str, limit: Optional[int]):
    """Search for a movie in your watchlist."""
    result = get_service(ctx).search(query, limit=limit)
    if result.status == "empty":
        click.echo("\nNo matching movies found.\n")
    elif result.status == "ok":
        print_items("Search Results:", result.items)
    finish(ctx, result)


if __name__ == "__main__":
    main()
