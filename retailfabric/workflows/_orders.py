"""
Orders.

Creation resolves identity and price through the order graph, then writes and
notifies under the configured Ordering. References to customers and products
are plain ids; details() resolves them at read time and reports dangling ones
as None.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from combinators import parallel as C_parallel
from kungfu import Error, LazyCoroResult, Ok, Result

from retailfabric.entities import IF_MATCH, REPLACE, Query
from retailfabric.workflows import _messages as msg
from retailfabric.workflows._base import Call, Workflow
from retailfabric.workflows._errors import WorkflowError
from retailfabric.workflows._inputs import NewOrder, OrderEdit, parse
from retailfabric.workflows._models import (
    CustomerProfile,
    Lookups,
    Order,
    OrderDetails,
    Product,
)
from retailfabric.workflows._order_graph import OrderEnv, resolve_order


class OrderWorkflow(Workflow):
    """
    Example:
        orders = OrderWorkflow(fabric)
        match await orders.create({"customer_id": "C001", "product_id": "P1"}):
            case Ok(order): order.price, order.tracking_id
            case Error(e): e.kind, e.field  # VALIDATION_FAILED, "product_id"
    """

    def _env(self, call: Call) -> OrderEnv:
        return OrderEnv(
            entities=self._entities,
            layout=self.layout,
            clock=self._fabric.clock,
            correlation_id=call.correlation_id,
        )

    async def _prepare(self, call: Call, *collections: str, queue: bool = False) -> Error[WorkflowError] | None:
        if (missing := self._unavailable(queue=queue)) is not None:
            return self._reject(call, missing)
        return await self._ensure_collections(call, *collections)

    # ───────────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────────

    async def create(self, data: NewOrder | Mapping[str, Any]) -> Result[Order, WorkflowError]:
        """
        Price defaults to the product's current price. An unknown product is a
        VALIDATION_FAILED on product_id and nothing is written.
        """
        call = Call("create order")
        match parse(NewOrder, data):
            case Error(e):
                return self._reject(call, e)
            case Ok(new):
                pass
        if (failed := await self._prepare(call, self.layout.orders, self.layout.products, queue=True)) is not None:
            return failed

        match await resolve_order(new, self._env(call)):
            case Error(e):
                return self._reject(call, e)
            case Ok(order):
                pass

        result = await self._write_and_notify(
            call,
            lambda: self._upsert(call, self.layout.orders, order, REPLACE),
            self.layout.order_queue,
            (msg.order_created(order, order.order_date),),
        )
        if isinstance(result, Ok):
            self._log.info(
                "Order %s created for %s at %.2f", order.order_id, order.customer_id, order.price, extra=call.extra
            )
        return result

    async def edit(self, data: OrderEdit | Mapping[str, Any]) -> Result[Order, WorkflowError]:
        call = Call("edit order")
        match parse(OrderEdit, data):
            case Error(e):
                return self._reject(call, e)
            case Ok(edit):
                pass
        if (failed := await self._prepare(call, self.layout.orders, queue=True)) is not None:
            return failed

        partition = edit.partition_key or self.layout.order_partition
        match await self._get(call, Order, self.layout.orders, partition, edit.order_id, field="order_id"):
            case Error(_) as failed_read:
                return failed_read
            case Ok(current):
                pass

        updated = edit.apply(current)
        result = await self._write_and_notify(
            call,
            lambda: self._upsert(call, self.layout.orders, updated, IF_MATCH),
            self.layout.order_queue,
            (msg.order_updated(updated, self._now()),),
        )
        if isinstance(result, Ok):
            self._log.info("Order %s updated to %s", edit.order_id, updated.status, extra=call.extra)
        return result

    async def delete(self, order_id: str) -> Result[bool, WorkflowError]:
        """Find the order by id in whichever partition holds it. Missing orders succeed."""
        call = Call("delete order")
        if (failed := await self._prepare(call, self.layout.orders, queue=True)) is not None:
            return failed

        match await self._find_row(call, Order, self.layout.orders, order_id):
            case Error(_) as failed_read:
                return failed_read
            case Ok(None):
                self._log.warning("Order %s not found for deletion", order_id, extra=call.extra)
                return Ok(False)
            case Ok(found):
                pass

        result = await self._write_and_notify(
            call,
            lambda: self._delete(call, self.layout.orders, found.partition_key, found.row_key),
            self.layout.order_queue,
            (msg.order_deleted(order_id, self._now()),),
        )
        if isinstance(result, Ok):
            self._log.info("Order %s deleted", order_id, extra=call.extra)
        return result

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    async def get(self, order_id: str, partition: str | None = None) -> Result[Order, WorkflowError]:
        call = Call("get order")
        if (failed := await self._prepare(call, self.layout.orders)) is not None:
            return failed
        return await self._get(
            call,
            Order,
            self.layout.orders,
            partition or self.layout.order_partition,
            order_id,
            field="order_id",
        )

    async def list(self) -> Result[list[Order], WorkflowError]:
        call = Call("list orders")
        if (failed := await self._prepare(call, self.layout.orders)) is not None:
            return failed
        return await self._list(call, Order, self.layout.orders)

    async def lookups(self) -> Result[Lookups, WorkflowError]:
        """Customers and products for an order form, fetched concurrently."""
        call = Call("order lookups")
        if (failed := await self._prepare(call, self.layout.customers, self.layout.products)) is not None:
            return failed

        fetched = await C_parallel(
            LazyCoroResult(lambda: self._list(call, CustomerProfile, self.layout.customers)),
            LazyCoroResult(lambda: self._list(call, Product, self.layout.products)),
        )
        match fetched:
            case Ok([customers, products]):
                return Ok(Lookups(
                    customers=tuple(cast(list[CustomerProfile], customers)),
                    products=tuple(cast(list[Product], products)),
                ))
            case Error(e):
                return Error(e)
            case _:
                raise AssertionError("parallel returned an unexpected shape")

    async def details(self, order: Order) -> Result[OrderDetails, WorkflowError]:
        """Resolve the order's customer (by customer id) and product (by row key)."""
        call = Call("order details")
        if (failed := await self._prepare(call, self.layout.customers, self.layout.products)) is not None:
            return failed

        by_customer_id = Query().where("CustomerId", order.customer_id)
        fetched = await C_parallel(
            LazyCoroResult(lambda: self._list(call, CustomerProfile, self.layout.customers, by_customer_id)),
            LazyCoroResult(lambda: self._lookup(
                call, Product, self.layout.products, self.layout.product_partition, order.product_id
            )),
        )
        match fetched:
            case Ok([customers, product]):
                customers = cast(list[CustomerProfile], customers)
                return Ok(OrderDetails(
                    order=order,
                    customer=customers[0] if customers else None,
                    product=cast(Product | None, product),
                ))
            case Error(e):
                return Error(e)
            case _:
                raise AssertionError("parallel returned an unexpected shape")

    async def list_details(self) -> Result[list[OrderDetails], WorkflowError]:
        """Every order with its references, joined in memory from three scans."""
        call = Call("list order details")
        collections = (self.layout.orders, self.layout.customers, self.layout.products)
        if (failed := await self._prepare(call, *collections)) is not None:
            return failed

        fetched = await C_parallel(
            LazyCoroResult(lambda: self._list(call, Order, self.layout.orders)),
            LazyCoroResult(lambda: self._list(call, CustomerProfile, self.layout.customers)),
            LazyCoroResult(lambda: self._list(call, Product, self.layout.products)),
        )
        match fetched:
            case Ok([orders, customers, products]):
                customer_index = {c.customer_id: c for c in cast(list[CustomerProfile], customers)}
                product_index = {
                    p.product_id: p
                    for p in cast(list[Product], products)
                    if p.partition_key == self.layout.product_partition
                }
                details = [
                    OrderDetails(o, customer_index.get(o.customer_id), product_index.get(o.product_id))
                    for o in cast(list[Order], orders)
                ]
                if dangling := sum(1 for d in details if d.dangling):
                    self._log.info("%d order(s) reference missing records", dangling, extra=call.extra)
                return Ok(details)
            case Error(e):
                return Error(e)
            case _:
                raise AssertionError("parallel returned an unexpected shape")


__all__ = ("OrderWorkflow",)
