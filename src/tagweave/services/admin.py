"""Tag administration: replace, rename, delete and item moves.

Every operation is one transaction. It either commits all of its changes
or rolls back and leaves the store untouched. Outcomes are reported as
``AdminOutcome`` messages meant for the operator, not raised.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from sqlalchemy import ColumnElement, delete, distinct, func, insert, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tagweave.context import AccessLevel, TaggingContext
from tagweave.db.functions import bind_access_oracle
from tagweave.db.models import Tagging
from tagweave.normalize import canonicalize_tag, glob_namespace, parse_tag_list

logger = logging.getLogger(__name__)

taggings = Tagging.__table__


class TaggingError(Exception):
    """Error during a tag administration operation."""

    pass


class TagNotFoundError(TaggingError):
    """No tagging matches the tag to change."""

    pass


class TaggingForbiddenError(TaggingError):
    """The caller may not perform the change."""

    pass


class TaggingValidationError(TaggingError):
    """The request is incomplete or malformed."""

    pass


@dataclass
class AdminOutcome:
    """Result of an administrative operation.

    ``tags`` is the number of distinct tags involved, ``items`` the number
    of distinct items affected and ``rows`` the number of taggings changed.
    """

    ok: bool
    message: str
    tags: int = 0
    items: int = 0
    rows: int = 0


def _matches_tag(canonical: str) -> ColumnElement[bool]:
    return func.CLEANTAG(taggings.c.tag) == canonical


def _editable_scope(ctx: TaggingContext) -> list[ColumnElement[bool]]:
    """Conditions limiting a bulk change to rows the caller may modify.

    Items must be editable. Non-administrators are further limited to
    their own taggings.
    """
    conditions: list[ColumnElement[bool]] = [
        func.GETACCESSLEVEL(taggings.c.item_id) >= int(AccessLevel.EDIT)
    ]
    if not ctx.is_admin:
        if ctx.tagger is None:
            raise TaggingForbiddenError("You need to be logged in to change tags")
        conditions.append(taggings.c.tagger == ctx.tagger)
    return conditions


def _unique_by_canonical(names: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        canonical = canonicalize_tag(name)
        if canonical and canonical not in seen:
            seen.add(canonical)
            result.append(name)
    return result


async def _count_items(session: AsyncSession, conditions: Sequence[ColumnElement[bool]]) -> int:
    stmt = select(func.count(distinct(taggings.c.item_id))).where(*conditions)
    result = await session.execute(stmt)
    return result.scalar_one()


async def _tag_exists(session: AsyncSession, conditions: Sequence[ColumnElement[bool]]) -> bool:
    stmt = select(taggings.c.item_id).where(*conditions).limit(1)
    result = await session.execute(stmt)
    return result.first() is not None


async def _retag(
    session: AsyncSession,
    conditions: Sequence[ColumnElement[bool]],
    new_name: str,
) -> tuple[int, int]:
    """Set the tag text of matching rows, merging into existing duplicates.

    Rows whose target ``(item_id, tagger, tag)`` already exists are left
    alone by the update and then deleted.

    Returns:
        Tuple of (rows renamed, duplicate rows merged away)
    """
    renamed = await session.execute(
        update(taggings).where(*conditions).values(tag=new_name).prefix_with("OR IGNORE")
    )
    merged = await session.execute(
        delete(taggings).where(*conditions, taggings.c.tag != new_name)
    )
    return renamed.rowcount, merged.rowcount


async def _run(
    session: AsyncSession,
    action: str,
    operation: Callable[[], Awaitable[AdminOutcome]],
) -> AdminOutcome:
    """Run ``operation`` as one transaction and turn failures into outcomes."""
    try:
        outcome = await operation()
        await session.commit()
    except TaggingError as e:
        await session.rollback()
        logger.warning("%s refused: %s", action, e)
        return AdminOutcome(ok=False, message=str(e))
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("%s failed: %s", action, e)
        return AdminOutcome(ok=False, message=f"{action} failed, no changes were made")
    logger.info("%s: %s", action, outcome.message)
    return outcome


async def replace_tags(
    session: AsyncSession,
    ctx: TaggingContext,
    item_id: str,
    tagger: str,
    tags: Sequence[str],
) -> AdminOutcome:
    """Replace all tags one tagger has set on an item.

    Deletes the tagger's existing taggings for the item and inserts one
    row per tag, text stored as given, with the item's language. Tags must
    be non-blank and free of commas (``parse_tag_list`` output is). If any
    insert fails the previous tag set stays in place.

    Args:
        session: Database session
        ctx: Caller context
        item_id: Item to tag
        tagger: Tagger whose tag set is replaced
        tags: New tag texts

    Returns:
        AdminOutcome, ``ok`` False if nothing was changed
    """

    async def operation() -> AdminOutcome:
        if not ctx.can_edit(item_id):
            raise TaggingForbiddenError(f"You may not edit the tags of {item_id}")
        # Commas separate tags in input and in grouped report columns
        bad = [tag for tag in tags if "," in tag or not tag.strip()]
        if bad:
            raise TaggingValidationError(f"Invalid tags: {bad!r}")

        language = ctx.language_of(item_id)
        await session.execute(
            delete(taggings).where(taggings.c.item_id == item_id, taggings.c.tagger == tagger)
        )
        for tag in tags:
            await session.execute(
                insert(taggings).values(
                    item_id=item_id, tagger=tagger, tag=tag, language=language
                )
            )
        return AdminOutcome(
            ok=True,
            message=f"Saved {len(tags)} tags on {item_id}",
            tags=len(tags),
            items=1,
            rows=len(tags),
        )

    return await _run(session, f"Replacing tags of {item_id} for {tagger}", operation)


async def rename_tag(
    session: AsyncSession,
    ctx: TaggingContext,
    former_name: str,
    new_names: str,
) -> AdminOutcome:
    """Rename a tag everywhere the caller may change it.

    ``new_names`` may list several comma-separated tags, splitting the
    former tag: each affected tagging keeps its row under the first new
    name and gains a copy for every other one. A new name that is only a
    respelling of the former tag is applied in place.

    Non-administrators only rename their own taggings. Administrators
    rename anyone's. Both only touch items they may edit.
    """

    async def operation() -> AdminOutcome:
        targets = _unique_by_canonical(parse_tag_list(new_names))
        if not former_name.strip() or not targets:
            raise TaggingValidationError("Enter the former and the new tag name")

        former = canonicalize_tag(former_name)
        scope = _editable_scope(ctx)
        await bind_access_oracle(session, ctx.access)

        if not await _tag_exists(session, [_matches_tag(former)]):
            raise TagNotFoundError(f"Tag {former_name!r} does not exist")

        conditions = [_matches_tag(former), *scope]
        items = await _count_items(session, conditions)

        # Apply a respelling in place, copy rows for every other new name
        targets.sort(key=lambda name: canonicalize_tag(name) != former)
        primary, *extra = targets

        rows = 0
        for name in extra:
            copied = await session.execute(
                insert(taggings)
                .from_select(
                    ["item_id", "tagger", "tag", "language"],
                    select(
                        taggings.c.item_id,
                        taggings.c.tagger,
                        literal(name),
                        taggings.c.language,
                    ).where(*conditions),
                )
                .prefix_with("OR IGNORE")
            )
            rows += copied.rowcount

        renamed, merged = await _retag(session, conditions, primary)
        rows += renamed + merged

        return AdminOutcome(
            ok=True,
            message=f"Renamed {former_name!r} to {', '.join(targets)!r} on {items} items",
            tags=len(targets),
            items=items,
            rows=rows,
        )

    return await _run(session, f"Renaming tag {former_name!r}", operation)


async def delete_tags(
    session: AsyncSession,
    ctx: TaggingContext,
    tags: Sequence[str],
    namespace: str = "",
) -> AdminOutcome:
    """Delete tags below a namespace.

    Non-administrators only delete their own taggings. The affected item
    count is taken before deleting, from exactly the rows the delete
    removes.
    """

    async def operation() -> AdminOutcome:
        canonical = list(dict.fromkeys(c for c in map(canonicalize_tag, tags) if c))
        if not canonical:
            raise TaggingValidationError("Enter the tags to delete")

        conditions = [
            taggings.c.item_id.op("GLOB")(glob_namespace(namespace)),
            func.CLEANTAG(taggings.c.tag).in_(canonical),
            *_editable_scope(ctx),
        ]
        await bind_access_oracle(session, ctx.access)

        items = await _count_items(session, conditions)
        result = await session.execute(delete(taggings).where(*conditions))

        return AdminOutcome(
            ok=True,
            message=f"{len(canonical)} tags removed from {items} items",
            tags=len(canonical),
            items=items,
            rows=result.rowcount,
        )

    return await _run(session, "Deleting tags", operation)


async def modify_item_tag(
    session: AsyncSession,
    ctx: TaggingContext,
    item_id: str,
    former_name: str,
    new_name: str = "",
) -> AdminOutcome:
    """Rename or delete one tag on one item, for all taggers.

    An empty ``new_name`` deletes the tag. The caller needs edit rights on
    the item; tagger ownership is not checked.
    """

    async def operation() -> AdminOutcome:
        if not ctx.can_edit(item_id):
            raise TaggingForbiddenError(f"You may not edit the tags of {item_id}")

        conditions = [taggings.c.item_id == item_id, _matches_tag(canonicalize_tag(former_name))]
        if not await _tag_exists(session, conditions):
            raise TagNotFoundError(f"Tag {former_name!r} does not exist on {item_id}")

        target = new_name.strip()
        if "," in target:
            raise TaggingValidationError(f"Invalid tag: {target!r}")
        if not target:
            result = await session.execute(delete(taggings).where(*conditions))
            return AdminOutcome(
                ok=True,
                message=f"Removed {former_name!r} from {item_id}",
                tags=1,
                items=1,
                rows=result.rowcount,
            )

        renamed, merged = await _retag(session, conditions, target)
        return AdminOutcome(
            ok=True,
            message=f"Renamed {former_name!r} to {target!r} on {item_id}",
            tags=1,
            items=1,
            rows=renamed + merged,
        )

    return await _run(session, f"Modifying tag {former_name!r} on {item_id}", operation)


async def rename_item(session: AsyncSession, old_item_id: str, new_item_id: str) -> AdminOutcome:
    """Move every tagging of an item to its new id.

    Called after the host renamed the item, so no permission check is
    made. Taggings already present under the new id absorb their
    duplicates.
    """

    async def operation() -> AdminOutcome:
        if old_item_id == new_item_id:
            return AdminOutcome(ok=True, message=f"{old_item_id} already has that id")

        moved = await session.execute(
            update(taggings)
            .where(taggings.c.item_id == old_item_id)
            .values(item_id=new_item_id)
            .prefix_with("OR IGNORE")
        )
        # Only rows the update skipped because their twin exists under the new id
        twin = taggings.alias("twin")
        has_twin = (
            select(twin.c.item_id)
            .where(
                twin.c.item_id == new_item_id,
                twin.c.tagger == taggings.c.tagger,
                twin.c.tag == taggings.c.tag,
            )
            .correlate(taggings)
            .exists()
        )
        merged = await session.execute(
            delete(taggings).where(taggings.c.item_id == old_item_id, has_twin)
        )
        rows = moved.rowcount + merged.rowcount
        return AdminOutcome(
            ok=True,
            message=f"Moved {rows} taggings from {old_item_id} to {new_item_id}",
            items=1 if rows else 0,
            rows=rows,
        )

    return await _run(session, f"Moving taggings of {old_item_id}", operation)
