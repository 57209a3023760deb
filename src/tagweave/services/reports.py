"""Read-side tag queries: item/tag counts, tag reports and exports."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tagweave.context import SINGLE_USER_TAGGER, TaggingContext
from tagweave.db.functions import bind_access_oracle
from tagweave.db.models import Tagging
from tagweave.schemas.tags import TagReport, TagReportRow
from tagweave.services.query_builder import (
    DEFAULT_SORT,
    BuiltQuery,
    FilterSpec,
    ProjectField,
    QueryBuilder,
    resolve_sort_field,
)

logger = logging.getLogger(__name__)


async def _execute(session: AsyncSession, ctx: TaggingContext, query: BuiltQuery) -> list[Any]:
    await bind_access_oracle(session, ctx.access)
    result = await session.execute(query.statement(), query.params)
    return list(result.fetchall())


async def run_filter(
    session: AsyncSession,
    ctx: TaggingContext,
    spec: FilterSpec,
) -> dict[str, int]:
    """Execute a FilterSpec and map each projected value to its count.

    Dict order follows the query's ordering (count descending, then value).
    """
    rows = await _execute(session, ctx, QueryBuilder(spec).count_query())
    return {row.item: row.cnt for row in rows}


async def find_items(
    session: AsyncSession,
    ctx: TaggingContext,
    filters: Mapping[str, Any],
    field: ProjectField,
    limit: int = 0,
    *,
    logical_and: bool = False,
) -> dict[str, int]:
    """Find tags or items matching search criteria.

    Args:
        session: Database session
        ctx: Caller context (access oracle decides visibility)
        filters: Criteria - ``tags``/``phrases``/``and``/``tag`` for the tags
            to match, ``ns``, ``notns``, ``tagger`` and ``item_id``
        field: ``"tag"`` to count tags, ``"item"`` to count items
        limit: Maximum number of results, 0 for all
        logical_and: Require every tag instead of any

    Returns:
        Mapping of value -> occurrence count
    """
    spec = FilterSpec.from_mapping(filters, field=field, limit=limit, logical_and=logical_and)
    return await run_filter(session, ctx, spec)


async def tags_for_item(
    session: AsyncSession,
    ctx: TaggingContext,
    item_id: str,
    *,
    own_only: bool = False,
) -> dict[str, int]:
    """Tags shown for one item, mapped to how many taggers used them.

    In single user mode only the shared tagger's tags are returned;
    ``own_only`` restricts to the caller's own tags (e.g. to prefill an
    edit form).
    """
    filters: dict[str, Any] = {"item_id": item_id}
    if own_only:
        if ctx.tagger is None:
            return {}
        filters["tagger"] = ctx.tagger
    elif ctx.single_user_mode:
        filters["tagger"] = SINGLE_USER_TAGGER
    return await find_items(session, ctx, filters, "tag")


async def all_tags_report(
    session: AsyncSession,
    ctx: TaggingContext,
    namespace: str = "",
    order_by: str = DEFAULT_SORT,
    descending: bool = False,
    post_filters: Mapping[str, str] | None = None,
) -> TagReport:
    """Summarize every visible tag, one row per canonical tag.

    Args:
        session: Database session
        ctx: Caller context (access oracle decides visibility)
        namespace: Restrict to items below this namespace, empty for all
        order_by: Report field to sort by (item_id, canonical, spellings,
            taggers, namespaces, count)
        descending: Sort descending
        post_filters: Report field -> substring the grouped column must contain

    Returns:
        TagReport with rows and any diagnostics about ignored sort/filter fields
    """
    sort_field, diagnostic = resolve_sort_field(order_by)
    spec = FilterSpec(project_field="tag", namespace_include=namespace or None)
    query = QueryBuilder(spec).report_query(
        sort_field, descending=descending, post_filters=post_filters
    )
    diagnostics = [diagnostic] if diagnostic else []
    diagnostics.extend(query.diagnostics)

    rows = await _execute(session, ctx, query)
    report_rows = [TagReportRow.from_row(row) for row in rows]
    logger.debug("Tag report for namespace %r: %d rows", namespace, len(report_rows))
    return TagReport(
        rows=report_rows,
        order_by=sort_field,
        descending=descending,
        diagnostics=diagnostics,
    )


async def tags_by_item(session: AsyncSession) -> dict[str, list[str]]:
    """Map every item id to the raw tag texts recorded for it.

    Includes all taggers and is not grouped by canonical tag. Intended for
    export and inspection, so no access filter applies.
    """
    stmt = select(Tagging.item_id, Tagging.tag).order_by(Tagging.item_id, Tagging.tag)
    result = await session.execute(stmt)
    tags: dict[str, list[str]] = {}
    for item_id, tag in result.all():
        tags.setdefault(item_id, []).append(tag)
    return tags


async def count_taggings(session: AsyncSession) -> int:
    """Count all stored taggings."""
    result = await session.execute(select(func.count()).select_from(Tagging))
    return result.scalar_one()
