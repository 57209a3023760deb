"""SQL functions registered on every store connection.

Queries group and compare tags with CLEANTAG(), build display columns with
GROUP_SORT() and GET_NS(), and filter by permission with GETACCESSLEVEL().
The first three are pure. GETACCESSLEVEL() asks the oracle stored in the
connection record's ``info`` under ``ACCESS_ORACLE_KEY``; without one it
denies everything. The oracle is set per session and cleared when the
connection goes back to the pool.
"""

import logging
from collections.abc import MutableMapping
from typing import Any

from sqlalchemy import Connection
from sqlalchemy.ext.asyncio import AsyncSession

from tagweave.context import AccessLevel, AccessOracle
from tagweave.normalize import canonicalize_tag, get_namespace, group_sort

logger = logging.getLogger(__name__)

ACCESS_ORACLE_KEY = "tagweave.access_oracle"


def _clean_tag(text: str | None) -> str | None:
    if text is None:
        return None
    return canonicalize_tag(text)


def _get_ns(item_id: str | None) -> str | None:
    if item_id is None:
        return None
    return get_namespace(item_id)


def register_functions(dbapi_connection: Any, connection_record: Any) -> None:
    """Register the SQL functions on a DB-API connection.

    Args:
        dbapi_connection: Freshly opened connection
        connection_record: Pool record of the connection, whose ``info``
            holds the access oracle bound by the current session
    """

    def access_level(item_id: str | None) -> int:
        oracle = connection_record.info.get(ACCESS_ORACLE_KEY)
        if oracle is None or item_id is None:
            return int(AccessLevel.NONE)
        return int(oracle.access_level(item_id))

    dbapi_connection.create_function("CLEANTAG", 1, _clean_tag, deterministic=True)
    dbapi_connection.create_function("GROUP_SORT", 2, group_sort, deterministic=True)
    dbapi_connection.create_function("GET_NS", 1, _get_ns, deterministic=True)
    dbapi_connection.create_function("GETACCESSLEVEL", 1, access_level)


def clear_access_oracle(info: MutableMapping[str, Any]) -> None:
    """Forget the bound oracle so GETACCESSLEVEL() denies again."""
    info.pop(ACCESS_ORACLE_KEY, None)


def _bind_access(sync_conn: Connection, oracle: AccessOracle) -> None:
    sync_conn.info[ACCESS_ORACLE_KEY] = oracle


async def bind_access_oracle(session: AsyncSession, oracle: AccessOracle) -> None:
    """Make GETACCESSLEVEL() on the session's connection ask ``oracle``.

    Must be called before any statement of the session that filters by
    permission. The binding lasts until the session releases the
    connection.
    """
    conn = await session.connection()
    await conn.run_sync(_bind_access, oracle)
    logger.debug("Bound access oracle %r", oracle)
