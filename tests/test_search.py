"""Tests for tag search and search links."""

from sqlalchemy.ext.asyncio import AsyncSession

from tagweave.context import TaggingContext
from tagweave.services.search import build_search_url, search_items

# =============================================================================
# build_search_url tests
# =============================================================================


def test_build_search_url_plain_tag() -> None:
    url = build_search_url("python", base_url="/doku.php")
    assert url == "/doku.php?do=search&sf=1&id=python"


def test_build_search_url_quotes_phrases() -> None:
    """Tags with separators are searched as a quoted phrase."""
    assert build_search_url("web dev", base_url="") == "?do=search&sf=1&id=%22web%20dev%22"


def test_build_search_url_mixed_case_is_not_quoted() -> None:
    assert build_search_url("Python", base_url="") == "?do=search&sf=1&id=Python"


def test_build_search_url_namespace() -> None:
    """A namespace restricts the search with an @ns term."""
    assert build_search_url("python", "wiki:dev", base_url="") == (
        "?do=search&sf=1&id=python%20%40wiki%3Adev"
    )


# =============================================================================
# search_items tests
# =============================================================================


async def test_search_items_phrases(
    db_session: AsyncSession, seed_taggings, admin_ctx: TaggingContext
) -> None:
    """Items are matched on canonical tags from the parsed query."""
    await seed_taggings(
        [
            ("wiki:a", "alice", "Web Dev"),
            ("wiki:a", "bob", "python"),
            ("wiki:b", "bob", "web-dev"),
            ("docs:c", "bob", "webdev"),
        ]
    )

    results = await search_items(db_session, admin_ctx, {"phrases": ["web dev"], "ns": "wiki"})

    assert results == {"wiki:a": 1, "wiki:b": 1}


async def test_search_items_and(
    db_session: AsyncSession, seed_taggings, admin_ctx: TaggingContext
) -> None:
    await seed_taggings(
        [
            ("wiki:a", "alice", "web"),
            ("wiki:a", "alice", "python"),
            ("wiki:b", "bob", "web"),
        ]
    )

    results = await search_items(
        db_session, admin_ctx, {"and": ["web", "python"]}, logical_and=True
    )

    assert results == {"wiki:a": 2}


async def test_search_items_without_tags(
    db_session: AsyncSession, seed_taggings, admin_ctx: TaggingContext
) -> None:
    """A query with no tags finds nothing rather than everything."""
    await seed_taggings([("wiki:a", "alice", "web")])

    assert await search_items(db_session, admin_ctx, {"ns": "wiki"}) == {}
