"""
Entities — partitioned records with optimistic concurrency.

Quick Start:
    from retailfabric.entities import Entity, MemoryEntityStore, IF_MATCH

    store = MemoryEntityStore()
    await store.ensure_collection("Products")

    match await store.upsert("Products", Entity("Products", "P1", {"Price": 9.99})):
        case Ok(written): etag = written.etag
        case Error(e): ...

    # Conditional update: fails with CONFLICT if someone wrote in between
    await store.upsert("Products", Entity("Products", "P1", {"Price": 8.99}, etag=etag), IF_MATCH)

    # Lazy scan
    async for entity in store.query("Products", Query().in_partition("Products")):
        ...
"""

from retailfabric.entities._types import (
    ETAG_ANY,
    IF_MATCH,
    REPLACE,
    Entity,
    EntityError,
    EntityErrorKind,
    EntityKey,
    Scalar,
    ScanFailed,
    WriteMode,
    Written,
)
from retailfabric.entities._query import ALL, Query, Scan
from retailfabric.entities._store import EntityStore, MemoryEntityStore
from retailfabric.entities._sqlalchemy import SQLAlchemyEntityStore

__all__ = (
    # Types
    "Entity",
    "EntityKey",
    "Scalar",
    "Written",
    "WriteMode",
    "REPLACE",
    "IF_MATCH",
    "ETAG_ANY",
    # Errors
    "EntityError",
    "EntityErrorKind",
    "ScanFailed",
    # Query
    "Query",
    "ALL",
    "Scan",
    # Stores
    "EntityStore",
    "MemoryEntityStore",
    "SQLAlchemyEntityStore",
)
