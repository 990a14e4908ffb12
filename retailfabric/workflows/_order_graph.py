"""
Order creation graph — resolves a NewOrder into a stamped Order.

    NewOrder ──┬── IdentityNode ──┐
               │                  ├── StampedOrderNode
               └── PriceNode ─────┘

Identity and price have no dependency on each other and run concurrently.
Nodes raise WorkflowFailure; resolve_order() turns it back into Error.
Nothing here writes: persistence and notification belong to the caller.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, cast

from kungfu import Error, Ok, Result
from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node

from retailfabric._types import Clock
from retailfabric.config import Layout
from retailfabric.entities import EntityError, EntityErrorKind, EntityStore
from retailfabric.workflows._errors import (
    CorruptEntity,
    WorkflowError,
    WorkflowFailure,
    from_entity_error,
)
from retailfabric.workflows._inputs import NewOrder
from retailfabric.workflows._models import Order, Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OrderEnv:
    """What the graph may read, injected alongside the request."""

    entities: EntityStore
    layout: Layout
    clock: Clock
    correlation_id: str


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@node
class IdentityNode:
    """Caller's order id and partition, or a fresh uuid and the default partition."""

    def __init__(self, partition: str, row_key: str) -> None:
        self.partition = partition
        self.row_key = row_key

    @classmethod
    def __compose__(cls, draft: NewOrder, env: OrderEnv) -> "IdentityNode":
        return cls(
            partition=draft.partition_key or env.layout.order_partition,
            row_key=draft.order_id or str(uuid.uuid4()),
        )


@node
class PriceNode:
    """Explicit price, or the referenced product's current price."""

    def __init__(self, price: float, looked_up: bool) -> None:
        self.price = price
        self.looked_up = looked_up

    @classmethod
    async def __compose__(cls, draft: NewOrder, env: OrderEnv) -> "PriceNode":
        if draft.price is not None:
            return cls(draft.price, looked_up=False)

        extra = {"correlation_id": env.correlation_id}
        result = await env.entities.get(
            env.layout.products, env.layout.product_partition, draft.product_id
        )
        match result:
            case Ok(entity):
                try:
                    product = Product.from_entity(entity)
                except CorruptEntity:
                    logger.exception("Product %s is unreadable", draft.product_id, extra=extra)
                    raise WorkflowFailure(WorkflowError.dependency(field="product_id")) from None
                return cls(product.price, looked_up=True)
            case Error(e):
                raise WorkflowFailure(_lookup_failure(e, draft.product_id, extra))


def _lookup_failure(e: EntityError, product_id: str, extra: dict[str, str]) -> WorkflowError:
    match e.kind:
        case EntityErrorKind.NOT_FOUND:
            return WorkflowError.validation(f"Unknown product {product_id!r}", "product_id")
        case EntityErrorKind.INVALID_KEY:
            return WorkflowError.validation(f"Invalid product id {product_id!r}", "product_id")
        case _:
            logger.error("Price lookup for %s failed: %s", product_id, e.message, exc_info=e.cause, extra=extra)
            return from_entity_error(e, field="product_id")


@node
class StampedOrderNode:
    """Derived fields: order date, tracking id, initial status."""

    def __init__(self, data: Order) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        draft: NewOrder,
        env: OrderEnv,
        identity: IdentityNode,
        price: PriceNode,
    ) -> "StampedOrderNode":
        return cls(draft.to_domain(
            partition=identity.partition,
            row_key=identity.row_key,
            price=price.price,
            now=env.clock(),
        ))


# ═══════════════════════════════════════════════════════════════════════════════
# Runner
# ═══════════════════════════════════════════════════════════════════════════════


async def _compose[T](target: type[T], *inputs: object) -> T:
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    async with Scope(detail="order") as scope:
        for value in inputs:
            scope.push(Value(type(value), value))
        await agent.run(scope, {})
        return cast(T, scope[target].value)


async def resolve_order(draft: NewOrder, env: OrderEnv) -> Result[Order, WorkflowError]:
    try:
        stamped = await _compose(StampedOrderNode, draft, env)
    except WorkflowFailure as failure:
        return Error(failure.error)
    return Ok(stamped.data)


__all__ = (
    "OrderEnv",
    "IdentityNode",
    "PriceNode",
    "StampedOrderNode",
    "resolve_order",
)
