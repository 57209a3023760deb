"""Database engine setup.

The engine is created lazily on first use and reused for the lifetime of
the process.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tagweave.config import get_settings
from tagweave.db.functions import clear_access_oracle, register_functions

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_tagging_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an engine whose connections know the tagging SQL functions."""
    engine = create_async_engine(database_url, echo=False, **kwargs)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        register_functions(dbapi_connection, connection_record)

    # A pooled connection must not carry one caller's rights to the next
    @event.listens_for(engine.sync_engine, "checkin")
    def _on_checkin(dbapi_connection: Any, connection_record: Any) -> None:
        if connection_record is not None:
            clear_access_oracle(connection_record.info)

    return engine


def get_engine() -> AsyncEngine:
    """Get the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_tagging_engine(get_settings().database_url)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory, creating it on first call."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return _session_factory


def async_session() -> AsyncSession:
    """Open a new session on the process-wide engine."""
    return get_session_factory()()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session."""
    async with async_session() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections and forget the cached engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
