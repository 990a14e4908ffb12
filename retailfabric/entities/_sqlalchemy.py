"""
SQLAlchemy entity store — every collection in one `entities` table.

    engine = create_engine("sqlite+aiosqlite:///retail.db")
    await create_schema(engine)
    store = SQLAlchemyEntityStore(engine)

Properties are stored as a JSON document per row. Partition and row
filters become WHERE clauses; property filters run in Python while
streaming.

Concurrency:
    REPLACE   INSERT ... ON CONFLICT DO UPDATE
    IF_MATCH  UPDATE ... WHERE etag = :expected, rowcount decides
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any, cast

from sqlalchemy import JSON, DateTime, String, delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Error, Ok, Result

from retailfabric._sql import Base, insert_for
from retailfabric._types import Clock, as_utc, utcnow
from retailfabric.entities._query import ALL, Query, Scan
from retailfabric.entities._types import (
    ETAG_ANY,
    Entity,
    EntityError,
    EntityErrorKind,
    EntityKey,
    ScanFailed,
    WriteMode,
    Written,
    check_key,
    conflict,
    missing_collection,
    new_etag,
    not_found,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class CollectionTable(Base):
    __tablename__ = "collections"

    name: Mapped[str] = mapped_column(String(63), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EntityTable(Base):
    __tablename__ = "entities"

    collection: Mapped[str] = mapped_column(String(63), primary_key=True)
    partition_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    row_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    properties: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    etag: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_entity(self) -> Entity:
        return Entity(
            partition_key=self.partition_key,
            row_key=self.row_key,
            properties=dict(self.properties),
            etag=self.etag,
            timestamp=as_utc(self.timestamp),
        )


def _backend(action: str, e: Exception) -> EntityError:
    return EntityError(EntityErrorKind.BACKEND, f"Failed to {action}: {e}", e)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyEntityStore:
    """
    Entity store on any SQLAlchemy async engine with ON CONFLICT support
    (SQLite via aiosqlite, PostgreSQL via asyncpg).

    Tables must exist: see retailfabric._sql.create_schema().
    """

    def __init__(self, engine: AsyncEngine, clock: Clock = utcnow) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        self._insert = insert_for(engine)
        self._clock = clock

    async def _has_collection(self, session: AsyncSession, name: str) -> bool:
        return await session.get(CollectionTable, name) is not None

    async def ensure_collection(self, name: str) -> Result[bool, EntityError]:
        try:
            async with self._sessions() as session:
                stmt = (
                    self._insert(CollectionTable)
                    .values(name=name, created_at=self._clock())
                    .on_conflict_do_nothing(index_elements=["name"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(_backend(f"create collection {name!r}", e))

    async def upsert(
        self,
        collection: str,
        entity: Entity,
        mode: WriteMode = WriteMode.REPLACE,
    ) -> Result[Written, EntityError]:
        if (invalid := check_key(entity.partition_key, entity.row_key)) is not None:
            return Error(invalid)

        written = Written(etag=new_etag(), timestamp=self._clock())
        try:
            async with self._sessions() as session:
                if not await self._has_collection(session, collection):
                    return Error(missing_collection(collection))

                match mode:
                    case WriteMode.REPLACE:
                        await self._replace(session, collection, entity, written)
                    case WriteMode.IF_MATCH:
                        if entity.etag is None:
                            return Error(conflict(collection, entity.key))
                        updated = await self._replace_if_match(session, collection, entity, written)
                        if not updated:
                            await session.rollback()
                            exists = await self._row_exists(session, collection, entity.key)
                            if not exists:
                                return Error(not_found(collection, entity.key))
                            return Error(conflict(collection, entity.key))

                await session.commit()
                return Ok(written)
        except Exception as e:
            return Error(_backend(f"write {collection}[{entity.partition_key}/{entity.row_key}]", e))

    async def _replace(
        self,
        session: AsyncSession,
        collection: str,
        entity: Entity,
        written: Written,
    ) -> None:
        stmt = self._insert(EntityTable).values(
            collection=collection,
            partition_key=entity.partition_key,
            row_key=entity.row_key,
            properties=dict(entity.properties),
            etag=written.etag,
            timestamp=written.timestamp,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["collection", "partition_key", "row_key"],
            set_={
                "properties": stmt.excluded.properties,
                "etag": stmt.excluded.etag,
                "timestamp": stmt.excluded.timestamp,
            },
        )
        await session.execute(stmt)

    async def _replace_if_match(
        self,
        session: AsyncSession,
        collection: str,
        entity: Entity,
        written: Written,
    ) -> bool:
        stmt = update(EntityTable).where(
            EntityTable.collection == collection,
            EntityTable.partition_key == entity.partition_key,
            EntityTable.row_key == entity.row_key,
        )
        if entity.etag != ETAG_ANY:
            stmt = stmt.where(EntityTable.etag == entity.etag)
        stmt = stmt.values(
            properties=dict(entity.properties),
            etag=written.etag,
            timestamp=written.timestamp,
        ).execution_options(synchronize_session=False)

        cursor = cast(CursorResult[Any], await session.execute(stmt))
        return cursor.rowcount > 0

    async def _row_exists(self, session: AsyncSession, collection: str, key: EntityKey) -> bool:
        stmt = select(EntityTable.etag).where(
            EntityTable.collection == collection,
            EntityTable.partition_key == key.partition,
            EntityTable.row_key == key.row,
        )
        return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def get(
        self, collection: str, partition: str, row: str
    ) -> Result[Entity, EntityError]:
        try:
            async with self._sessions() as session:
                stored = await session.get(EntityTable, (collection, partition, row))
                if stored is not None:
                    return Ok(stored.to_entity())
                if not await self._has_collection(session, collection):
                    return Error(missing_collection(collection))
                return Error(not_found(collection, EntityKey(partition, row)))
        except Exception as e:
            return Error(_backend(f"read {collection}[{partition}/{row}]", e))

    def query(self, collection: str, query: Query = ALL) -> Scan:
        async def scan() -> AsyncGenerator[Entity, None]:
            try:
                async with self._sessions() as session:
                    if not await self._has_collection(session, collection):
                        raise ScanFailed(missing_collection(collection))

                    stmt = select(EntityTable).where(EntityTable.collection == collection)
                    if query.partition is not None:
                        stmt = stmt.where(EntityTable.partition_key == query.partition)
                    if query.row is not None:
                        stmt = stmt.where(EntityTable.row_key == query.row)
                    stmt = stmt.order_by(EntityTable.partition_key, EntityTable.row_key)

                    rows = await session.stream_scalars(stmt)
                    async for stored in rows:
                        entity = stored.to_entity()
                        if query.matches(entity):
                            yield entity
            except ScanFailed:
                raise
            except Exception as e:
                raise ScanFailed(_backend(f"scan {collection}", e)) from e

        return Scan(scan)

    async def delete(
        self, collection: str, partition: str, row: str
    ) -> Result[bool, EntityError]:
        try:
            async with self._sessions() as session:
                if not await self._has_collection(session, collection):
                    return Error(missing_collection(collection))
                stmt = delete(EntityTable).where(
                    EntityTable.collection == collection,
                    EntityTable.partition_key == partition,
                    EntityTable.row_key == row,
                ).execution_options(synchronize_session=False)
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(_backend(f"delete {collection}[{partition}/{row}]", e))

    async def close(self) -> None:
        # Engine is owned by the caller
        pass


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CollectionTable",
    "EntityTable",
    "SQLAlchemyEntityStore",
)
