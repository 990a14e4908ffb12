"""
Fabric — the three stores plus settings, built once at start-up.

    fabric = await open_fabric(Settings.in_memory())
    try:
        office = BackOffice(fabric)
        ...
    finally:
        await fabric.close()

A component whose setting is absent, or whose backend cannot be reached at
start-up, is left as None. Operations that need it then return
SERVICE_UNAVAILABLE instead of crashing.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from retailfabric._sql import create_engine, create_schema
from retailfabric._types import Clock, utcnow
from retailfabric.blobs import FileSystemObjectStore, MemoryObjectStore, ObjectStore
from retailfabric.config import MEMORY, Layout, Settings
from retailfabric.entities import EntityStore, MemoryEntityStore, SQLAlchemyEntityStore
from retailfabric.queues import MemoryQueue, NotificationQueue, Notifier, SQLAlchemyQueue

logger = logging.getLogger(__name__)


class Fabric:
    __slots__ = ("settings", "entities", "blobs", "queue", "notifier", "clock", "_engine")

    def __init__(
        self,
        settings: Settings,
        *,
        entities: EntityStore | None,
        blobs: ObjectStore | None,
        queue: NotificationQueue | None,
        clock: Clock = utcnow,
        engine: AsyncEngine | None = None,
    ) -> None:
        self.settings = settings
        self.entities = entities
        self.blobs = blobs
        self.queue = queue
        self.notifier = Notifier(queue)
        self.clock = clock
        self._engine = engine

    @property
    def layout(self) -> Layout:
        return self.settings.layout

    async def close(self) -> None:
        for component in (self.entities, self.blobs, self.queue):
            if component is not None:
                await component.close()
        if self._engine is not None:
            await self._engine.dispose()


async def _open_database(
    settings: Settings,
    clock: Clock,
) -> tuple[EntityStore | None, NotificationQueue | None, AsyncEngine | None]:
    url = settings.database_url
    if url is None:
        logger.warning("No database configured; entity and queue operations are unavailable")
        return None, None, None
    if url == MEMORY:
        return MemoryEntityStore(clock), MemoryQueue(clock), None

    engine = create_engine(url, echo=settings.echo_sql)
    try:
        await create_schema(engine)
        return SQLAlchemyEntityStore(engine, clock), SQLAlchemyQueue(engine, clock), engine
    except Exception:
        logger.exception("Database %s is unreachable; entity and queue operations are unavailable", engine.url)
        await engine.dispose()
        return None, None, None


def _open_blobs(settings: Settings) -> ObjectStore | None:
    root = settings.blob_root
    if root is None:
        logger.warning("No blob root configured; attachment operations are unavailable")
        return None
    if root == MEMORY:
        return MemoryObjectStore(settings.blob_base_url or MEMORY)
    return FileSystemObjectStore(root, base_url=settings.blob_base_url)


async def open_fabric(settings: Settings, *, clock: Clock = utcnow) -> Fabric:
    entities, queue, engine = await _open_database(settings, clock)
    return Fabric(
        settings,
        entities=entities,
        blobs=_open_blobs(settings),
        queue=queue,
        clock=clock,
        engine=engine,
    )


__all__ = (
    "Fabric",
    "open_fabric",
)
