"""Tests for the SQL functions registered on store connections."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tagweave.context import AccessLevel, MappingAccessOracle, StaticAccessOracle, TaggingContext
from tagweave.db.functions import bind_access_oracle
from tagweave.normalize import canonicalize_tag
from tagweave.services.query_builder import FilterSpec, QueryBuilder
from tagweave.services.reports import run_filter


async def test_cleantag_matches_python(db_session: AsyncSession) -> None:
    """SQL and Python canonicalization agree."""
    for tag in ["My Tag", "ÄPFEL", "Straße", "a-b_c", "C++"]:
        result = await db_session.execute(text("SELECT CLEANTAG(:tag)"), {"tag": tag})
        assert result.scalar_one() == canonicalize_tag(tag)


async def test_group_sort_and_namespace(db_session: AsyncSession) -> None:
    result = await db_session.execute(
        text("SELECT GROUP_SORT('c,a,b', ' | '), GET_NS('wiki:sub:page'), GET_NS('page')")
    )
    assert tuple(result.one()) == ("a | b | c", "wiki:sub", None)


async def test_access_level_denies_until_bound(db_session: AsyncSession) -> None:
    """Unbound sessions see no access at all."""
    result = await db_session.execute(text("SELECT GETACCESSLEVEL('wiki:start')"))
    assert result.scalar_one() == AccessLevel.NONE

    await bind_access_oracle(db_session, MappingAccessOracle({"wiki": AccessLevel.EDIT}))

    result = await db_session.execute(
        text("SELECT GETACCESSLEVEL('wiki:start'), GETACCESSLEVEL('docs:x')")
    )
    assert tuple(result.one()) == (AccessLevel.EDIT, AccessLevel.NONE)


async def test_access_binding_ends_with_session(db_engine: AsyncEngine, seed_taggings) -> None:
    """A pooled connection does not hand one caller's rights to the next."""
    await seed_taggings([("secret:p", "alice", "x")])
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    spec = FilterSpec(project_field="item")
    admin = TaggingContext(
        user="admin", access=StaticAccessOracle(), is_admin=True, default_language="en"
    )

    async with factory() as session:
        assert await run_filter(session, admin, spec) == {"secret:p": 1}

    async with factory() as session:
        query = QueryBuilder(spec).count_query()
        result = await session.execute(query.statement(), query.params)
        assert result.all() == []
