"""
Shared workflow plumbing.

Every operation:
    1. gets a fresh correlation id
    2. validates its input (pydantic) before touching any store
    3. checks the components it needs are configured
    4. ensures its collection, container and queue exist
    5. writes and notifies in the configured Ordering
Errors leave with the correlation id attached. Dependency failures are logged
with their cause and surfaced generically.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Protocol, Self

from kungfu import Error, Ok, Result

from retailfabric._logging import new_correlation_id
from retailfabric.blobs import BlobError, ObjectStore
from retailfabric.config import Layout, Ordering
from retailfabric.entities import (
    ALL,
    Entity,
    EntityError,
    EntityErrorKind,
    EntityStore,
    Query,
    WriteMode,
)
from retailfabric.workflows._errors import (
    CorruptEntity,
    ErrorKind,
    WorkflowError,
    from_blob_error,
    from_entity_error,
)
from retailfabric.workflows._fabric import Fabric


class Stored(Protocol):
    etag: str | None
    timestamp: datetime | None

    def to_entity(self) -> Entity: ...

    @classmethod
    def from_entity(cls, entity: Entity) -> Self: ...


class Call:
    """One workflow invocation: its correlation id and log context."""

    __slots__ = ("action", "correlation_id", "extra")

    def __init__(self, action: str) -> None:
        self.action = action
        self.correlation_id = new_correlation_id()
        self.extra = {"correlation_id": self.correlation_id}


class Workflow:
    def __init__(self, fabric: Fabric) -> None:
        self._fabric = fabric
        self._log = logging.getLogger(type(self).__module__)

    @property
    def layout(self) -> Layout:
        return self._fabric.settings.layout

    @property
    def _entities(self) -> EntityStore:
        assert self._fabric.entities is not None
        return self._fabric.entities

    @property
    def _blobs(self) -> ObjectStore:
        assert self._fabric.blobs is not None
        return self._fabric.blobs

    def _now(self) -> datetime:
        return self._fabric.clock()

    # ───────────────────────────────────────────────────────────────────────────
    # Failures
    # ───────────────────────────────────────────────────────────────────────────

    def _reject(self, call: Call, error: WorkflowError) -> Error[WorkflowError]:
        match error.kind:
            case ErrorKind.DEPENDENCY_FAILED | ErrorKind.SERVICE_UNAVAILABLE:
                self._log.error("%s failed: %s", call.action, error.message, extra=call.extra)
            case _:
                self._log.info("%s rejected: %s", call.action, error.message, extra=call.extra)
        return Error(error.with_correlation(call.correlation_id))

    def _entity_failure(
        self, call: Call, e: EntityError, *, field: str | None = None
    ) -> Error[WorkflowError]:
        error = from_entity_error(e, field=field)
        if error.kind is ErrorKind.DEPENDENCY_FAILED:
            self._log.error("%s failed: %s", call.action, e.message, exc_info=e.cause, extra=call.extra)
            return Error(error.with_correlation(call.correlation_id))
        return self._reject(call, error)

    def _blob_failure(
        self, call: Call, e: BlobError, *, field: str | None = None
    ) -> Error[WorkflowError]:
        error = from_blob_error(e, field=field)
        if error.kind is ErrorKind.DEPENDENCY_FAILED:
            self._log.error("%s failed: %s", call.action, e.message, exc_info=e.cause, extra=call.extra)
            return Error(error.with_correlation(call.correlation_id))
        return self._reject(call, error)

    def _corrupt(self, call: Call, e: CorruptEntity) -> Error[WorkflowError]:
        self._log.error("%s failed: %s", call.action, e, extra=call.extra)
        return Error(WorkflowError.dependency().with_correlation(call.correlation_id))

    # ───────────────────────────────────────────────────────────────────────────
    # Preconditions
    # ───────────────────────────────────────────────────────────────────────────

    def _unavailable(
        self, *, entities: bool = True, queue: bool = False, blobs: bool = False
    ) -> WorkflowError | None:
        if entities and self._fabric.entities is None:
            return WorkflowError.unavailable("Entity store")
        if queue and self._fabric.queue is None:
            return WorkflowError.unavailable("Notification queue")
        if blobs and self._fabric.blobs is None:
            return WorkflowError.unavailable("Object store")
        return None

    async def _ensure_collections(self, call: Call, *names: str) -> Error[WorkflowError] | None:
        for name in names:
            match await self._entities.ensure_collection(name):
                case Error(e):
                    return self._entity_failure(call, e)
                case Ok(created) if created:
                    self._log.info("Created collection %s", name, extra=call.extra)
        return None

    async def _ensure_container(self, call: Call, name: str) -> Error[WorkflowError] | None:
        match await self._blobs.ensure_container(name):
            case Error(e):
                return self._blob_failure(call, e)
            case Ok(created) if created:
                self._log.info("Created container %s", name, extra=call.extra)
        return None

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    async def _get[M: Stored](
        self,
        call: Call,
        model: type[M],
        collection: str,
        partition: str,
        row: str,
        *,
        field: str | None = None,
    ) -> Result[M, WorkflowError]:
        match await self._entities.get(collection, partition, row):
            case Ok(entity):
                try:
                    return Ok(model.from_entity(entity))
                except CorruptEntity as e:
                    return self._corrupt(call, e)
            case Error(e):
                return self._entity_failure(call, e, field=field)

    async def _lookup[M: Stored](
        self,
        call: Call,
        model: type[M],
        collection: str,
        partition: str,
        row: str,
    ) -> Result[M | None, WorkflowError]:
        """Like _get, but absence is Ok(None) rather than NOT_FOUND."""
        match await self._entities.get(collection, partition, row):
            case Ok(entity):
                try:
                    return Ok(model.from_entity(entity))
                except CorruptEntity as e:
                    return self._corrupt(call, e)
            case Error(e) if e.kind is EntityErrorKind.NOT_FOUND:
                return Ok(None)
            case Error(e):
                return self._entity_failure(call, e)

    async def _list[M: Stored](
        self,
        call: Call,
        model: type[M],
        collection: str,
        query: Query = ALL,
    ) -> Result[list[M], WorkflowError]:
        match await self._entities.query(collection, query).collect():
            case Ok(entities):
                try:
                    return Ok([model.from_entity(entity) for entity in entities])
                except CorruptEntity as e:
                    return self._corrupt(call, e)
            case Error(e):
                return self._entity_failure(call, e)

    async def _find_row[M: Stored](
        self,
        call: Call,
        model: type[M],
        collection: str,
        row: str,
    ) -> Result[M | None, WorkflowError]:
        """Locate a row by row key alone, in whichever partition holds it."""
        match await self._entities.query(collection, Query().with_row(row)).first():
            case Ok(None):
                return Ok(None)
            case Ok(entity):
                try:
                    return Ok(model.from_entity(entity))
                except CorruptEntity as e:
                    return self._corrupt(call, e)
            case Error(e):
                return self._entity_failure(call, e)

    # ───────────────────────────────────────────────────────────────────────────
    # Writes
    # ───────────────────────────────────────────────────────────────────────────

    async def _upsert[M: Stored](
        self,
        call: Call,
        collection: str,
        model: M,
        mode: WriteMode,
        *,
        field: str | None = None,
    ) -> Result[M, WorkflowError]:
        match await self._entities.upsert(collection, model.to_entity(), mode):
            case Ok(written):
                return Ok(replace(model, etag=written.etag, timestamp=written.timestamp))  # type: ignore[type-var]
            case Error(e):
                return self._entity_failure(call, e, field=field)

    async def _delete(
        self, call: Call, collection: str, partition: str, row: str
    ) -> Result[bool, WorkflowError]:
        match await self._entities.delete(collection, partition, row):
            case Ok(existed):
                return Ok(existed)
            case Error(e):
                return self._entity_failure(call, e)

    async def _notify(self, call: Call, queue: str, bodies: Sequence[str]) -> None:
        if bodies:
            await self._fabric.notifier.publish(queue, *bodies, correlation_id=call.correlation_id)

    async def _write_and_notify[T](
        self,
        call: Call,
        write: Callable[[], Awaitable[Result[T, WorkflowError]]],
        queue: str,
        bodies: Sequence[str],
    ) -> Result[T, WorkflowError]:
        """
        Apply the configured Ordering.

        PERSIST_FIRST: notices only after a successful write.
        NOTIFY_FIRST: notices first; a later write failure does not retract them.
        """
        if self._fabric.settings.ordering is Ordering.NOTIFY_FIRST:
            await self._notify(call, queue, bodies)
            return await write()

        result = await write()
        match result:
            case Ok(_):
                await self._notify(call, queue, bodies)
        return result


__all__ = (
    "Call",
    "Stored",
    "Workflow",
)
