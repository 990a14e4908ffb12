"""
Entity store — typed storage protocol and in-memory backend.

All methods except query() return Result for explicit error handling.
query() returns a lazy Scan; failures surface while iterating.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from kungfu import Error, Ok, Result

from retailfabric._types import Clock, utcnow
from retailfabric.entities._query import ALL, Query, Scan
from retailfabric.entities._types import (
    Entity,
    EntityError,
    EntityKey,
    ScanFailed,
    Scalar,
    WriteMode,
    Written,
    check_key,
    conflict,
    etag_matches,
    missing_collection,
    new_etag,
    not_found,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


@runtime_checkable
class EntityStore(Protocol):
    """
    Partitioned record store with optimistic concurrency.

    Every successful write assigns a fresh etag and timestamp, returned as
    a Written receipt. Entities passed in are never mutated.
    """

    async def ensure_collection(self, name: str) -> Result[bool, EntityError]:
        """Create the collection if absent. Ok(True) if it was created."""
        ...

    async def upsert(
        self,
        collection: str,
        entity: Entity,
        mode: WriteMode = WriteMode.REPLACE,
    ) -> Result[Written, EntityError]:
        """
        Write an entity.

        REPLACE: insert or overwrite, etag ignored.
        IF_MATCH: overwrite only if the stored etag matches entity.etag
                  ("*" matches any). Missing row is NOT_FOUND, no etag or a
                  stale one is CONFLICT.
        """
        ...

    async def get(
        self, collection: str, partition: str, row: str
    ) -> Result[Entity, EntityError]:
        ...

    def query(self, collection: str, query: Query = ALL) -> Scan:
        ...

    async def delete(
        self, collection: str, partition: str, row: str
    ) -> Result[bool, EntityError]:
        """Delete a row. Ok(True) if it existed, Ok(False) if it did not."""
        ...

    async def close(self) -> None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Row:
    properties: dict[str, Scalar]
    etag: str
    timestamp: datetime


class MemoryEntityStore:
    """
    In-process entity store.

    Rows within a collection are returned in (partition, row) order.
    The lock makes compare-and-swap atomic across concurrent callers.

    Example:
        store = MemoryEntityStore()
        await store.ensure_collection("Products")
        match await store.upsert("Products", Entity("Products", "P1", {"Name": "Widget"})):
            case Ok(written): print(written.etag)
            case Error(e): print(e.kind)
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._collections: dict[str, dict[tuple[str, str], _Row]] = {}
        self._lock = asyncio.Lock()

    async def ensure_collection(self, name: str) -> Result[bool, EntityError]:
        async with self._lock:
            if name in self._collections:
                return Ok(False)
            self._collections[name] = {}
            return Ok(True)

    async def upsert(
        self,
        collection: str,
        entity: Entity,
        mode: WriteMode = WriteMode.REPLACE,
    ) -> Result[Written, EntityError]:
        if (invalid := check_key(entity.partition_key, entity.row_key)) is not None:
            return Error(invalid)

        async with self._lock:
            table = self._collections.get(collection)
            if table is None:
                return Error(missing_collection(collection))

            slot = (entity.partition_key, entity.row_key)
            current = table.get(slot)

            if mode is WriteMode.IF_MATCH:
                if current is None:
                    return Error(not_found(collection, entity.key))
                if not etag_matches(entity.etag, current.etag):
                    return Error(conflict(collection, entity.key))

            written = Written(etag=new_etag(), timestamp=self._clock())
            table[slot] = _Row(dict(entity.properties), written.etag, written.timestamp)
            return Ok(written)

    async def get(
        self, collection: str, partition: str, row: str
    ) -> Result[Entity, EntityError]:
        async with self._lock:
            table = self._collections.get(collection)
            if table is None:
                return Error(missing_collection(collection))
            stored = table.get((partition, row))
            if stored is None:
                return Error(not_found(collection, EntityKey(partition, row)))
            return Ok(_to_entity(partition, row, stored))

    def query(self, collection: str, query: Query = ALL) -> Scan:
        async def scan() -> AsyncGenerator[Entity, None]:
            async with self._lock:
                table = self._collections.get(collection)
                if table is None:
                    raise ScanFailed(missing_collection(collection))
                snapshot = [
                    _to_entity(partition, row, stored)
                    for (partition, row), stored in sorted(table.items())
                    if (query.partition is None or partition == query.partition)
                    and (query.row is None or row == query.row)
                ]
            for entity in snapshot:
                if query.matches(entity):
                    yield entity

        return Scan(scan)

    async def delete(
        self, collection: str, partition: str, row: str
    ) -> Result[bool, EntityError]:
        async with self._lock:
            table = self._collections.get(collection)
            if table is None:
                return Error(missing_collection(collection))
            return Ok(table.pop((partition, row), None) is not None)

    async def close(self) -> None:
        pass

    # Test helpers

    def size(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))

    def clear(self) -> None:
        for table in self._collections.values():
            table.clear()


def _to_entity(partition: str, row: str, stored: _Row) -> Entity:
    return Entity(
        partition_key=partition,
        row_key=row,
        properties=dict(stored.properties),
        etag=stored.etag,
        timestamp=stored.timestamp,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "EntityStore",
    "MemoryEntityStore",
)
