"""
Query and Scan — lazy, restartable reads over a collection.

Query is an immutable filter. Partition and row filters are pushed down to
the backend; property equality and predicates are evaluated per entity.

    q = (
        Query()
        .in_partition("Orders")
        .where("CustomerId", "C001")
        .matching(lambda e: (e.get("Quantity") or 0) > 1)
    )

    async for entity in store.query("Orders", q):
        ...

    match await store.query("Orders", q).collect():
        case Ok(entities): ...
        case Error(e): ...
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from dataclasses import dataclass, replace

from combinators import lift as L
from kungfu import LazyCoroResult

from retailfabric.entities._types import (
    Entity,
    EntityError,
    EntityErrorKind,
    Scalar,
    ScanFailed,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Query — Immutable Filter
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Query:
    partition: str | None = None
    row: str | None = None
    equals: tuple[tuple[str, Scalar], ...] = ()
    predicates: tuple[Callable[[Entity], bool], ...] = ()

    def in_partition(self, partition: str) -> Query:
        return replace(self, partition=partition)

    def with_row(self, row: str) -> Query:
        return replace(self, row=row)

    def where(self, name: str, value: Scalar) -> Query:
        return replace(self, equals=(*self.equals, (name, value)))

    def matching(self, predicate: Callable[[Entity], bool]) -> Query:
        return replace(self, predicates=(*self.predicates, predicate))

    def matches(self, entity: Entity) -> bool:
        if self.partition is not None and entity.partition_key != self.partition:
            return False
        if self.row is not None and entity.row_key != self.row:
            return False
        for name, value in self.equals:
            if name not in entity.properties or entity.properties[name] != value:
                return False
        return all(predicate(entity) for predicate in self.predicates)


ALL = Query()


# ═══════════════════════════════════════════════════════════════════════════════
# Scan — Lazy Restartable Sequence
# ═══════════════════════════════════════════════════════════════════════════════

type ScanSource = Callable[[], AsyncGenerator[Entity, None]]


def _scan_error(e: Exception) -> EntityError:
    if isinstance(e, ScanFailed):
        return e.error
    return EntityError(EntityErrorKind.BACKEND, f"Scan failed: {e}", e)


class Scan:
    """
    Async-iterable result of a query.

    Nothing is read until iteration starts. Every `async for` restarts the
    read from the backend. A backend failure during iteration raises
    ScanFailed; `collect()` and `first()` turn it into an Error.
    """

    __slots__ = ("_source",)

    def __init__(self, source: ScanSource) -> None:
        self._source = source

    def __aiter__(self) -> AsyncIterator[Entity]:
        return self._source()

    def collect(self) -> LazyCoroResult[list[Entity], EntityError]:
        async def gather() -> list[Entity]:
            return [entity async for entity in self]

        return L.catching_async(gather, on_error=_scan_error)

    def first(self) -> LazyCoroResult[Entity | None, EntityError]:
        """First match, or None. Stops the underlying read early."""

        async def take() -> Entity | None:
            iterator = self._source()
            try:
                async for entity in iterator:
                    return entity
                return None
            finally:
                await iterator.aclose()

        return L.catching_async(take, on_error=_scan_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Query",
    "ALL",
    "Scan",
    "ScanSource",
)
