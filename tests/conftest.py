"""Shared fixtures: backends, a fixed clock, and fabrics with failing stores."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from kungfu import Error, Ok, Result

from retailfabric._sql import create_engine, create_schema
from retailfabric.blobs import FileSystemObjectStore, MemoryObjectStore, ObjectStore
from retailfabric.config import Ordering, Settings
from retailfabric.entities import (
    Entity,
    EntityError,
    EntityErrorKind,
    EntityStore,
    MemoryEntityStore,
    SQLAlchemyEntityStore,
    WriteMode,
    Written,
)
from retailfabric.queues import MemoryQueue, NotificationQueue, SQLAlchemyQueue
from retailfabric.workflows import BackOffice, Fabric, open_fabric

START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class FixedClock:
    """Returns `now` until moved with advance()."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FailingWrites(MemoryEntityStore):
    """Memory store whose upserts into the named collections fail as a backend error."""

    def __init__(self, clock: FixedClock, *collections: str) -> None:
        super().__init__(clock)
        self.failing = set(collections)
        self.attempts = 0

    async def upsert(
        self,
        collection: str,
        entity: Entity,
        mode: WriteMode = WriteMode.REPLACE,
    ) -> Result[Written, EntityError]:
        if collection in self.failing:
            self.attempts += 1
            return Error(EntityError(EntityErrorKind.BACKEND, "disk full", OSError(28, "No space left")))
        return await super().upsert(collection, entity, mode)


class FailingReads(FailingWrites):
    """Point reads from the named collections time out as a backend error."""

    def __init__(self, clock: FixedClock, *collections: str) -> None:
        super().__init__(clock)
        self.unreadable = set(collections)

    async def get(self, collection: str, partition: str, row: str) -> Result[Entity, EntityError]:
        if collection in self.unreadable:
            return Error(EntityError(EntityErrorKind.BACKEND, "read timed out", TimeoutError()))
        return await super().get(collection, partition, row)


def _sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'retail.db'}"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ═══════════════════════════════════════════════════════════════════════════════
# Store backends
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture(params=["memory", "sqlite"])
async def entity_store(request: pytest.FixtureRequest, tmp_path: Path, clock: FixedClock) -> AsyncIterator[EntityStore]:
    if request.param == "memory":
        yield MemoryEntityStore(clock)
        return
    engine = create_engine(_sqlite_url(tmp_path))
    await create_schema(engine)
    yield SQLAlchemyEntityStore(engine, clock)
    await engine.dispose()


@pytest.fixture(params=["memory", "filesystem"])
def object_store(request: pytest.FixtureRequest, tmp_path: Path) -> ObjectStore:
    if request.param == "memory":
        return MemoryObjectStore()
    return FileSystemObjectStore(tmp_path / "blobs")


@pytest.fixture(params=["memory", "sqlite"])
async def queue(request: pytest.FixtureRequest, tmp_path: Path, clock: FixedClock) -> AsyncIterator[NotificationQueue]:
    if request.param == "memory":
        yield MemoryQueue(clock)
        return
    engine = create_engine(_sqlite_url(tmp_path))
    await create_schema(engine)
    yield SQLAlchemyQueue(engine, clock)
    await engine.dispose()


# ═══════════════════════════════════════════════════════════════════════════════
# Fabrics
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture(params=["memory", "sqlite"])
def settings(request: pytest.FixtureRequest, tmp_path: Path) -> Settings:
    if request.param == "memory":
        return Settings.in_memory()
    return Settings().with_database(_sqlite_url(tmp_path)).with_blob_root(str(tmp_path / "blobs"))


@pytest.fixture
async def fabric(settings: Settings, clock: FixedClock) -> AsyncIterator[Fabric]:
    opened = await open_fabric(settings, clock=clock)
    assert opened.entities is not None
    assert opened.queue is not None
    assert opened.blobs is not None
    yield opened
    await opened.close()


@pytest.fixture
def office(fabric: Fabric) -> BackOffice:
    return BackOffice(fabric)


@pytest.fixture
def failing_fabric(clock: FixedClock) -> Callable[..., Fabric]:
    """Fabric on memory stores whose writes to (or reads from) the given collections fail."""

    def make(
        *collections: str,
        ordering: Ordering = Ordering.PERSIST_FIRST,
        unreadable: tuple[str, ...] = (),
    ) -> Fabric:
        entities = FailingReads(clock, *unreadable)
        entities.failing.update(collections)
        return Fabric(
            Settings.in_memory().with_ordering(ordering),
            entities=entities,
            blobs=MemoryObjectStore(),
            queue=MemoryQueue(clock),
            clock=clock,
        )

    return make


@pytest.fixture
def notices() -> Callable[[Fabric, str], Awaitable[list[str]]]:
    """Bodies waiting in a queue, oldest first. A queue never created reads as empty."""

    async def read(fabric: Fabric, name: str) -> list[str]:
        assert fabric.queue is not None
        match await fabric.queue.peek(name, 1000):
            case Ok(messages):
                return [m.body for m in messages]
            case Error(_):
                return []

    return read


@pytest.fixture
def seeded_product() -> Callable[..., Awaitable[None]]:
    """Create product P1 "Widget" at 9.99."""

    async def make(office: BackOffice, price: float = 9.99) -> None:
        result = await office.create_product({"product_id": "P1", "name": "Widget", "price": price})
        assert isinstance(result, Ok), result

    return make
