"""
SQLAlchemy plumbing shared by the entity store and the notification queue.

    engine = create_engine("sqlite+aiosqlite:///retail.db")
    await create_schema(engine)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


# Dialects with INSERT ... ON CONFLICT.
_INSERTS: dict[str, Callable[..., Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def insert_for(engine: AsyncEngine) -> Callable[..., Any]:
    """
    Dialect insert() supporting on_conflict_do_update / do_nothing.

    Raises ValueError for dialects without ON CONFLICT.
    """
    name = engine.dialect.name
    try:
        return _INSERTS[name]
    except KeyError:
        supported = ", ".join(sorted(_INSERTS))
        raise ValueError(f"Unsupported database dialect {name!r} (supported: {supported})") from None


def _is_memory_sqlite(url: str) -> bool:
    if not url.startswith("sqlite"):
        return False
    return ":memory:" in url or url.rstrip("/").endswith(":")


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Async engine for url.

    An in-memory SQLite database lives in a single connection, so it is
    pinned with StaticPool to be shared by every session.
    """
    if _is_memory_sqlite(url):
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo)


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table the fabric needs. Safe to repeat."""
    # Register tables on Base.metadata
    import retailfabric.entities._sqlalchemy  # noqa: F401
    import retailfabric.queues._sqlalchemy  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = (
    "Base",
    "insert_for",
    "create_engine",
    "create_schema",
)
