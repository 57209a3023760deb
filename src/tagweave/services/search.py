"""Tag-scoped item search and search links."""

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession

from tagweave.config import get_settings
from tagweave.context import TaggingContext
from tagweave.normalize import canonicalize_tag
from tagweave.services.query_builder import FilterSpec, tags_from_query
from tagweave.services.reports import run_filter

__all__ = ["build_search_url", "search_items", "tags_from_query"]


def build_search_url(tag: str, namespace: str = "", *, base_url: str | None = None) -> str:
    """Build the query string searching for a tag.

    Tags whose canonical form differs from their case-folded text (they
    contain spaces, hyphens, underscores or other punctuation) are quoted
    so the search treats them as one phrase.

    Args:
        tag: Tag as displayed
        namespace: Limit the search to this namespace
        base_url: Prefix for the query string, defaults to settings.search_base_url
    """
    canonical = "".join(ch for ch in canonicalize_tag(tag) if ch.isalnum())
    if canonical != tag.casefold():
        tag = f'"{tag}"'

    if base_url is None:
        base_url = get_settings().search_base_url

    url = f"{base_url}?do=search&sf=1&id={quote(tag, safe='')}"
    if namespace:
        url += quote(f" @{namespace}", safe="")
    return url


async def search_items(
    session: AsyncSession,
    ctx: TaggingContext,
    parsed: Mapping[str, Any],
    *,
    logical_and: bool = False,
    limit: int = 0,
) -> dict[str, int]:
    """Find items tagged with the tags of a parsed search query.

    Args:
        session: Database session
        ctx: Caller context
        parsed: Parsed query - ``phrases``/``and``/``tag`` plus optional
            ``ns``, ``notns``, ``tagger`` and ``item_id``
        logical_and: Items must carry every tag (default: any tag)
        limit: Maximum number of results, 0 for all

    Returns:
        Item id -> number of matching taggings
    """
    spec = FilterSpec.from_mapping(parsed, field="item", limit=limit, logical_and=logical_and)
    if not spec.tags:
        return {}
    return await run_filter(session, ctx, spec)
