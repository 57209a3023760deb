"""tagweave command-line interface."""

import asyncio
import json
import logging
from collections.abc import Coroutine
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

# Load .env file before importing config
load_dotenv()

from tagweave.config import get_settings  # noqa: E402
from tagweave.context import StaticAccessOracle, TaggingContext  # noqa: E402
from tagweave.db.engine import async_session, dispose_engine, get_engine  # noqa: E402
from tagweave.db.models import Base  # noqa: E402
from tagweave.normalize import clean_id, parse_tag_list  # noqa: E402
from tagweave.services.admin import (  # noqa: E402
    AdminOutcome,
    delete_tags,
    modify_item_tag,
    rename_item,
    rename_tag,
    replace_tags,
)
from tagweave.services.cloud import visible_cloud  # noqa: E402
from tagweave.services.query_builder import SORT_FIELDS  # noqa: E402
from tagweave.services.reports import (  # noqa: E402
    all_tags_report,
    count_taggings,
    find_items,
    tags_by_item,
    tags_for_item,
)
from tagweave.services.search import build_search_url  # noqa: E402


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_sort(sort: str) -> tuple[str, bool]:
    """Split a ``field[,desc]`` sort option into (field, descending)."""
    field, _, direction = sort.partition(",")
    return field, direction.strip().lower() == "desc"


def parse_filters(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``FIELD=TEXT`` options."""
    filters: dict[str, str] = {}
    for value in values:
        field, sep, needle = value.partition("=")
        if not sep:
            raise click.BadParameter(f"expected FIELD=TEXT, got {value!r}", param_hint="--filter")
        filters[field.strip()] = needle
    return filters


def _context(obj: dict) -> TaggingContext:
    # The operator console has full access to every item
    return TaggingContext.from_settings(
        obj["user"], StaticAccessOracle(), is_admin=obj["admin"]
    )


def _report_outcome(outcome: AdminOutcome) -> None:
    if outcome.ok:
        click.echo(outcome.message)
    else:
        raise click.ClickException(outcome.message)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    async def _main() -> None:
        try:
            await coro
        finally:
            await dispose_engine()

    asyncio.run(_main())


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--user", "-u", envvar="TAGWEAVE_USER", help="Act as this user")
@click.option("--admin", is_flag=True, help="Act with administrator rights")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, user: str | None, admin: bool) -> None:
    """tagweave - tag store administration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["user"] = user
    ctx.obj["admin"] = admin
    setup_logging(verbose)


@cli.group()
def db() -> None:
    """Manage the tag database."""
    pass


@db.command("init")
def db_init() -> None:
    """Create the taggings table if it does not exist."""

    async def _init() -> None:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        click.echo(f"Initialized {get_settings().database_url}")

    _run(_init())


@cli.command("set")
@click.argument("item_id")
@click.argument("tags")
@click.pass_obj
def set_cmd(obj: dict, item_id: str, tags: str) -> None:
    """Replace your tags on ITEM_ID with the comma-separated TAGS."""
    item_id = clean_id(item_id)
    tagging = _context(obj)
    if tagging.tagger is None:
        raise click.ClickException("--user is required to save tags")

    async def _set() -> None:
        async with async_session() as session:
            outcome = await replace_tags(
                session, tagging, item_id, tagging.tagger, parse_tag_list(tags)
            )
        _report_outcome(outcome)

    _run(_set())


@cli.command("show")
@click.argument("item_id")
@click.option("--mine", is_flag=True, help="Only your own tags")
@click.pass_obj
def show_cmd(obj: dict, item_id: str, mine: bool) -> None:
    """Show the tags of ITEM_ID."""
    item_id = clean_id(item_id)

    async def _show() -> None:
        async with async_session() as session:
            tags = await tags_for_item(session, _context(obj), item_id, own_only=mine)
        if not tags:
            click.echo("No tags.")
            return
        click.echo(", ".join(tags))

    _run(_show())


@cli.command("find")
@click.option("--tag", "-t", "tags", multiple=True, help="Tag to match (repeatable)")
@click.option("--and", "logical_and", is_flag=True, help="Require every tag")
@click.option("--ns", help="Only items below this namespace")
@click.option("--not-ns", help="Exclude items below this namespace")
@click.option("--tagger", help="Only taggings by this user")
@click.option("--item", "item_id", help="Only this item")
@click.option("--field", type=click.Choice(["tag", "item"]), default="item", show_default=True)
@click.option("--limit", "-n", default=0, help="Max results (0 for all)")
@click.pass_obj
def find_cmd(
    obj: dict,
    tags: tuple[str, ...],
    logical_and: bool,
    ns: str | None,
    not_ns: str | None,
    tagger: str | None,
    item_id: str | None,
    field: str,
    limit: int,
) -> None:
    """Count items or tags matching the given criteria."""
    filters = {
        "tags": list(tags),
        "ns": ns,
        "notns": not_ns,
        "tagger": tagger,
        "item_id": clean_id(item_id) if item_id else None,
    }

    async def _find() -> None:
        async with async_session() as session:
            results = await find_items(
                session, _context(obj), filters, field, limit, logical_and=logical_and
            )
        if not results:
            click.echo("No results.")
            return
        for value, count in results.items():
            click.echo(f"{count:>6}  {value}")

    _run(_find())


@cli.command("report")
@click.option("--ns", default="", help="Only items below this namespace")
@click.option(
    "--sort",
    "-s",
    default="canonical",
    help=f"Sort field, append ',desc' to reverse ({', '.join(SORT_FIELDS)})",
)
@click.option("--filter", "-f", "filters", multiple=True, help="FIELD=TEXT substring filter")
@click.pass_obj
def report_cmd(obj: dict, ns: str, sort: str, filters: tuple[str, ...]) -> None:
    """Show every tag with its spellings, taggers and namespaces."""
    order_by, descending = parse_sort(sort)
    post_filters = parse_filters(filters)

    async def _report() -> None:
        console = Console()
        async with async_session() as session:
            report = await all_tags_report(
                session, _context(obj), ns, order_by, descending, post_filters
            )

        for diagnostic in report.diagnostics:
            console.print(f"[yellow]{diagnostic}[/]")

        if not report.rows:
            console.print("No tags found.")
            return

        table = Table(title=f"Tags in {ns or 'all namespaces'}")
        table.add_column("Tag", style="cyan")
        table.add_column("Count", justify="right")
        table.add_column("Written as")
        table.add_column("Namespaces")
        table.add_column("Taggers")
        for row in report.rows:
            table.add_row(
                row.canonical,
                str(row.count),
                row.spellings_display,
                row.namespaces_display,
                row.taggers_display,
            )
        console.print(table)

    _run(_report())


@cli.command("cloud")
@click.option("--ns", default="", help="Only items below this namespace")
@click.option("--levels", default=None, type=int, help="Number of size levels")
@click.option("--links", is_flag=True, help="Print search links")
@click.pass_obj
def cloud_cmd(obj: dict, ns: str, levels: int | None, links: bool) -> None:
    """Print the tag cloud with a size level per tag."""
    settings = get_settings()
    levels = levels or settings.cloud_levels

    async def _cloud() -> None:
        tagging = _context(obj)
        async with async_session() as session:
            counts = await find_items(session, tagging, {"ns": ns}, "tag")
        weights = visible_cloud(
            counts,
            tagging,
            hidden_prefix=settings.hidden_prefix,
            can_edit=True,
            levels=levels,
        )
        if not weights:
            click.echo("No tags.")
            return
        for tag, level in sorted(weights.items()):
            line = f"t{level:<3} {tag}"
            if links:
                line += f"  {build_search_url(tag, ns)}"
            click.echo(line)

    _run(_cloud())


@cli.command("export")
def export_cmd() -> None:
    """Print every item's raw tags as JSON."""

    async def _export() -> None:
        async with async_session() as session:
            data = await tags_by_item(session)
            total = await count_taggings(session)
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        click.echo(f"Exported {total} taggings on {len(data)} items", err=True)

    _run(_export())


@cli.command("rename")
@click.argument("former")
@click.argument("new")
@click.pass_obj
def rename_cmd(obj: dict, former: str, new: str) -> None:
    """Rename tag FORMER to NEW (comma-separate NEW to split it)."""

    async def _rename() -> None:
        async with async_session() as session:
            outcome = await rename_tag(session, _context(obj), former, new)
        _report_outcome(outcome)

    _run(_rename())


@cli.command("delete")
@click.argument("tags", nargs=-1, required=True)
@click.option("--ns", default="", help="Only items below this namespace")
@click.pass_obj
def delete_cmd(obj: dict, tags: tuple[str, ...], ns: str) -> None:
    """Delete TAGS."""

    async def _delete() -> None:
        async with async_session() as session:
            outcome = await delete_tags(session, _context(obj), list(tags), ns)
        _report_outcome(outcome)

    _run(_delete())


@cli.command("modify")
@click.argument("item_id")
@click.argument("former")
@click.argument("new", required=False, default="")
@click.pass_obj
def modify_cmd(obj: dict, item_id: str, former: str, new: str) -> None:
    """Rename FORMER to NEW on ITEM_ID for all taggers, or delete it if NEW is omitted."""
    item_id = clean_id(item_id)

    async def _modify() -> None:
        async with async_session() as session:
            outcome = await modify_item_tag(session, _context(obj), item_id, former, new)
        _report_outcome(outcome)

    _run(_modify())


@cli.command("move")
@click.argument("old_item_id")
@click.argument("new_item_id")
def move_cmd(old_item_id: str, new_item_id: str) -> None:
    """Move all taggings from OLD_ITEM_ID to NEW_ITEM_ID after an item rename."""
    old_item_id, new_item_id = clean_id(old_item_id), clean_id(new_item_id)

    async def _move() -> None:
        async with async_session() as session:
            outcome = await rename_item(session, old_item_id, new_item_id)
        _report_outcome(outcome)

    _run(_move())


if __name__ == "__main__":
    cli()
