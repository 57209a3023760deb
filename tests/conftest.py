"""Shared fixtures: a fresh SQLite tag store per test."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tagweave.context import AccessLevel, StaticAccessOracle, TaggingContext
from tagweave.db.engine import create_tagging_engine
from tagweave.db.models import Base, Tagging

SeedTaggings = Callable[[list[tuple[str, str, str]]], Awaitable[None]]


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create an engine on a temporary database file with the schema in place."""
    engine = create_tagging_engine(f"sqlite+aiosqlite:///{tmp_path / 'tags.sqlite3'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on the test database."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def seed_taggings(db_session: AsyncSession) -> SeedTaggings:
    """Insert (item_id, tagger, tag) rows directly and commit."""

    async def _seed(rows: list[tuple[str, str, str]]) -> None:
        await db_session.execute(
            insert(Tagging),
            [
                {"item_id": item_id, "tagger": tagger, "tag": tag, "language": "en"}
                for item_id, tagger, tag in rows
            ],
        )
        await db_session.commit()

    return _seed


@pytest.fixture
def admin_ctx() -> TaggingContext:
    """Administrator with edit rights everywhere."""
    return TaggingContext(
        user="admin", access=StaticAccessOracle(), is_admin=True, default_language="en"
    )


@pytest.fixture
def alice_ctx() -> TaggingContext:
    """Regular user with edit rights everywhere."""
    return TaggingContext(
        user="alice", access=StaticAccessOracle(AccessLevel.EDIT), default_language="en"
    )
