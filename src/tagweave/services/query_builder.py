"""Query builder for tag and item aggregate queries.

Every filter is a ``Clause``: an SQL fragment with its own named bind
parameters. Fragments are joined into the statement text while values
only ever travel in the params dict handed to the executor.

All queries read the ``taggings`` table and rely on the SQL functions
registered by ``tagweave.db.functions``.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import TextClause, text

from tagweave.context import AccessLevel
from tagweave.normalize import canonicalize_tag, glob_namespace

logger = logging.getLogger(__name__)

ProjectField = Literal["tag", "item"]
LogicalMode = Literal["and", "or"]

# Report output columns: alias -> aggregate expression
REPORT_COLUMNS: dict[str, str] = {
    "canonical": "CLEANTAG(tag)",
    "spellings": "GROUP_SORT(GROUP_CONCAT(DISTINCT tag), ', ')",
    "taggers": "GROUP_SORT(GROUP_CONCAT(DISTINCT tagger), ', ')",
    "namespaces": "GROUP_SORT(GROUP_CONCAT(DISTINCT GET_NS(item_id)), ', ')",
    "item_ids": "GROUP_SORT(GROUP_CONCAT(DISTINCT item_id), ', ')",
    "count": "COUNT(*)",
}

# Sortable/filterable report fields -> report column alias
SORT_FIELDS: dict[str, str] = {
    "item_id": "item_ids",
    "canonical": "canonical",
    "spellings": "spellings",
    "taggers": "taggers",
    "namespaces": "namespaces",
    "count": "count",
}

DEFAULT_SORT = "canonical"


def tags_from_query(parsed: Mapping[str, Any]) -> list[str]:
    """Extract the tags to match from a parsed search query.

    Quoted phrases win over plain ``and`` terms; a single ``tag`` entry is
    what autocomplete lookups send. An explicit ``tags`` list is taken as is.
    """
    if parsed.get("tags"):
        return list(parsed["tags"])
    if parsed.get("phrases"):
        return list(parsed["phrases"])
    if parsed.get("and"):
        return list(parsed["and"])
    if parsed.get("tag"):
        return [parsed["tag"]]
    return []


class FilterSpec(BaseModel):
    """What subset of taggings a query considers.

    ``limit`` caps result rows, 0 means unbounded.
    """

    model_config = ConfigDict(frozen=True)

    project_field: ProjectField = "tag"
    tags: tuple[str, ...] = ()
    logical_mode: LogicalMode = "or"
    namespace_include: str | None = None
    namespace_exclude: str | None = None
    tagger: str | None = None
    item_id: str | None = None
    limit: int = Field(default=0, ge=0)

    @classmethod
    def from_mapping(
        cls,
        filters: Mapping[str, Any],
        *,
        field: ProjectField,
        limit: int = 0,
        logical_and: bool = False,
    ) -> "FilterSpec":
        """Build from a filter mapping (``ns``, ``notns``, ``tagger``, ``item_id``, tags)."""
        return cls(
            project_field=field,
            tags=tuple(tags_from_query(filters)),
            logical_mode="and" if logical_and else "or",
            namespace_include=filters.get("ns") or None,
            namespace_exclude=filters.get("notns") or None,
            tagger=filters.get("tagger") or None,
            item_id=filters.get("item_id") or None,
            limit=limit,
        )

    @property
    def canonical_tags(self) -> list[str]:
        """Requested tags canonicalized, de-duplicated, in request order."""
        result: list[str] = []
        for tag in self.tags:
            canonical = canonicalize_tag(tag)
            if canonical and canonical not in result:
                result.append(canonical)
        return result


@dataclass(frozen=True)
class Clause:
    """An SQL predicate fragment and the parameters it binds."""

    sql: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BuiltQuery:
    """Statement text, its parameters and any non-fatal diagnostics."""

    sql: str
    params: dict[str, Any]
    diagnostics: tuple[str, ...] = ()

    def statement(self) -> TextClause:
        return text(self.sql)


# =============================================================================
# Filter primitives
# =============================================================================


def access_clause(min_level: int) -> Clause:
    return Clause("GETACCESSLEVEL(item_id) >= :min_access", {"min_access": int(min_level)})


def namespace_clause(namespace: str) -> Clause:
    return Clause("item_id GLOB :ns_include", {"ns_include": glob_namespace(namespace)})


def not_namespace_clause(namespace: str) -> Clause:
    return Clause("item_id NOT GLOB :ns_exclude", {"ns_exclude": glob_namespace(namespace)})


def tagger_clause(tagger: str) -> Clause:
    return Clause("tagger = :tagger", {"tagger": tagger})


def item_clause(item_id: str) -> Clause:
    return Clause("item_id = :item_id", {"item_id": item_id})


def _tag_params(canonical_tags: list[str]) -> tuple[str, dict[str, Any]]:
    names = [f"tag_{i}" for i in range(len(canonical_tags))]
    placeholders = ", ".join(f":{name}" for name in names)
    return placeholders, dict(zip(names, canonical_tags, strict=True))


def any_tag_clause(canonical_tags: list[str]) -> Clause:
    """Rows whose canonical tag is one of ``canonical_tags``."""
    placeholders, params = _tag_params(canonical_tags)
    return Clause(f"CLEANTAG(tag) IN ({placeholders})", params)


def all_tags_clause(canonical_tags: list[str], row_filters: Iterable[Clause] = ()) -> Clause:
    """Rows on items that carry every one of ``canonical_tags``.

    Checked per item in a subquery so the outer grouping still counts each
    tagging once. ``row_filters`` restrict the taggings the subquery looks
    at, so it sees the same rows as the outer query.
    """
    tag_clause = any_tag_clause(canonical_tags)
    where_sql, params = _combine([*row_filters, tag_clause], "WHERE")
    params["tag_total"] = len(canonical_tags)
    return Clause(
        "item_id IN ("
        f"SELECT item_id FROM taggings{where_sql}"
        " GROUP BY item_id"
        " HAVING COUNT(DISTINCT CLEANTAG(tag)) = :tag_total)",
        params,
    )


def like_clause(field_name: str, needle: str) -> Clause:
    """Substring match on a report column, for use after grouping."""
    escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    alias = SORT_FIELDS[field_name]
    param = f"having_{alias}"
    return Clause(
        f"{REPORT_COLUMNS[alias]} LIKE :{param} ESCAPE '\\'",
        {param: f"%{escaped}%"},
    )


def _combine(clauses: Iterable[Clause], keyword: str) -> tuple[str, dict[str, Any]]:
    clauses = list(clauses)
    if not clauses:
        return "", {}
    params: dict[str, Any] = {}
    for clause in clauses:
        params.update(clause.params)
    return f" {keyword} " + " AND ".join(clause.sql for clause in clauses), params


def resolve_sort_field(order_by: str) -> tuple[str, str | None]:
    """Validate a report sort field.

    Returns:
        Tuple of (field to use, diagnostic or None). Unknown fields fall
        back to ``DEFAULT_SORT``.
    """
    if order_by in SORT_FIELDS:
        return order_by, None
    diagnostic = f"cannot sort by {order_by!r}: field does not exist, sorting by {DEFAULT_SORT}"
    logger.warning(diagnostic)
    return DEFAULT_SORT, diagnostic


class QueryBuilder:
    """Translates a FilterSpec into parameterized aggregate queries."""

    def __init__(self, spec: FilterSpec, *, min_access: int = AccessLevel.READ) -> None:
        self.spec = spec
        self.min_access = min_access

    def row_filters(self) -> list[Clause]:
        """Access, namespace, tagger and item filters."""
        spec = self.spec
        clauses = [access_clause(self.min_access)]
        if spec.namespace_include:
            clauses.append(namespace_clause(spec.namespace_include))
        if spec.namespace_exclude:
            clauses.append(not_namespace_clause(spec.namespace_exclude))
        if spec.tagger:
            clauses.append(tagger_clause(spec.tagger))
        if spec.item_id:
            clauses.append(item_clause(spec.item_id))
        return clauses

    def where_clauses(self) -> list[Clause]:
        """Row filters applied before grouping."""
        spec = self.spec
        row_filters = self.row_filters()
        clauses = list(row_filters)

        tags = spec.canonical_tags
        if tags:
            clauses.append(any_tag_clause(tags))
            if spec.logical_mode == "and" and spec.project_field == "tag":
                clauses.append(all_tags_clause(tags, row_filters))
        return clauses

    def having_clauses(self) -> list[Clause]:
        """Group filters for the count query."""
        tags = self.spec.canonical_tags
        if tags and self.spec.logical_mode == "and" and self.spec.project_field == "item":
            return [
                Clause("COUNT(DISTINCT CLEANTAG(tag)) = :tag_total", {"tag_total": len(tags)})
            ]
        return []

    def _limit(self, params: dict[str, Any]) -> str:
        if not self.spec.limit:
            return ""
        params["limit"] = self.spec.limit
        return " LIMIT :limit"

    def count_query(self) -> BuiltQuery:
        """Build the value -> occurrence count query.

        ``item`` projection yields one row per item with the number of
        matching taggings; ``tag`` projection yields one row per canonical
        tag, represented by its lowest spelling. Rows come as
        ``(item, cnt)`` ordered by count descending, then value.
        """
        if self.spec.project_field == "item":
            select_item, group_by = "item_id", "item_id"
        else:
            select_item, group_by = "MIN(tag)", "CLEANTAG(tag)"

        where_sql, params = _combine(self.where_clauses(), "WHERE")
        having_sql, having_params = _combine(self.having_clauses(), "HAVING")
        params.update(having_params)

        sql = (
            f"SELECT {select_item} AS item, COUNT(*) AS cnt FROM taggings"
            f"{where_sql} GROUP BY {group_by}{having_sql}"
            " ORDER BY cnt DESC, item"
        )
        sql += self._limit(params)
        logger.debug("Count query: %s %s", sql, params)
        return BuiltQuery(sql, params)

    def report_query(
        self,
        order_by: str = DEFAULT_SORT,
        *,
        descending: bool = False,
        post_filters: Mapping[str, str] | None = None,
    ) -> BuiltQuery:
        """Build the per-tag summary query.

        ``post_filters`` maps report fields to substrings that the grouped
        column must contain. Unknown sort or filter fields are reported as
        diagnostics and ignored.
        """
        diagnostics: list[str] = []
        sort_field, diagnostic = resolve_sort_field(order_by)
        if diagnostic:
            diagnostics.append(diagnostic)

        having: list[Clause] = []
        for field_name, needle in (post_filters or {}).items():
            if not needle:
                continue
            if field_name not in SORT_FIELDS:
                message = f"cannot filter by {field_name!r}: field does not exist"
                logger.warning(message)
                diagnostics.append(message)
                continue
            having.append(like_clause(field_name, needle))

        columns = ", ".join(f'{expr} AS "{alias}"' for alias, expr in REPORT_COLUMNS.items())
        where_sql, params = _combine(self.where_clauses(), "WHERE")
        having_sql, having_params = _combine(having, "HAVING")
        params.update(having_params)

        alias = SORT_FIELDS[sort_field]
        order_sql = f' ORDER BY "{alias}"' + (" DESC" if descending else "")
        if alias != "canonical":
            order_sql += ', "canonical"'

        sql = (
            f"SELECT {columns} FROM taggings{where_sql}"
            f" GROUP BY CLEANTAG(tag){having_sql}{order_sql}"
        )
        sql += self._limit(params)
        logger.debug("Report query: %s %s", sql, params)
        return BuiltQuery(sql, params, tuple(diagnostics))
