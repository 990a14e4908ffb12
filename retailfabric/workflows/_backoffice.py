"""
BackOffice — one entry point over every workflow.

    async with await BackOffice.open(Settings.from_env()) as office:
        match await office.create_order({"customer_id": "C001", "product_id": "P1"}):
            case Ok(order): ...
            case Error(e): ...

Every method returns Result[..., WorkflowError]. A component that is not
configured yields SERVICE_UNAVAILABLE from the operations needing it.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import TracebackType
from typing import Any, Self

from kungfu import Result

from retailfabric._types import Clock, utcnow
from retailfabric.blobs import BlobRef
from retailfabric.config import Settings
from retailfabric.workflows._contracts import ContractWorkflow
from retailfabric.workflows._customers import CustomerWorkflow
from retailfabric.workflows._errors import WorkflowError
from retailfabric.workflows._fabric import Fabric, open_fabric
from retailfabric.workflows._inputs import (
    CustomerEdit,
    NewCustomer,
    NewOrder,
    NewProduct,
    OrderEdit,
    ProductEdit,
)
from retailfabric.workflows._models import (
    Attachment,
    CustomerProfile,
    Lookups,
    Order,
    OrderDetails,
    Product,
)
from retailfabric.workflows._orders import OrderWorkflow
from retailfabric.workflows._products import ProductWorkflow


class BackOffice:
    __slots__ = ("fabric", "customers", "products", "orders", "contracts")

    def __init__(self, fabric: Fabric) -> None:
        self.fabric = fabric
        self.customers = CustomerWorkflow(fabric)
        self.products = ProductWorkflow(fabric)
        self.orders = OrderWorkflow(fabric)
        self.contracts = ContractWorkflow(fabric)

    @classmethod
    async def open(cls, settings: Settings, *, clock: Clock = utcnow) -> Self:
        return cls(await open_fabric(settings, clock=clock))

    async def close(self) -> None:
        await self.fabric.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ───────────────────────────────────────────────────────────────────────────
    # Customers
    # ───────────────────────────────────────────────────────────────────────────

    async def create_customer(
        self, data: NewCustomer | Mapping[str, Any]
    ) -> Result[CustomerProfile, WorkflowError]:
        return await self.customers.create(data)

    async def edit_customer(
        self, data: CustomerEdit | Mapping[str, Any]
    ) -> Result[CustomerProfile, WorkflowError]:
        return await self.customers.edit(data)

    async def delete_customer(
        self, row_key: str, partition: str | None = None
    ) -> Result[bool, WorkflowError]:
        return await self.customers.delete(row_key, partition)

    async def get_customer(
        self, row_key: str, partition: str | None = None
    ) -> Result[CustomerProfile, WorkflowError]:
        return await self.customers.get(row_key, partition)

    async def list_customers(self) -> Result[list[CustomerProfile], WorkflowError]:
        return await self.customers.list()

    async def seed_customers(self) -> Result[list[CustomerProfile], WorkflowError]:
        return await self.customers.seed()

    # ───────────────────────────────────────────────────────────────────────────
    # Products
    # ───────────────────────────────────────────────────────────────────────────

    async def create_product(
        self,
        data: NewProduct | Mapping[str, Any],
        image: Attachment | None = None,
    ) -> Result[Product, WorkflowError]:
        return await self.products.create(data, image)

    async def edit_product(
        self,
        data: ProductEdit | Mapping[str, Any],
        image: Attachment | None = None,
    ) -> Result[Product, WorkflowError]:
        return await self.products.edit(data, image)

    async def delete_product(self, product_id: str) -> Result[bool, WorkflowError]:
        return await self.products.delete(product_id)

    async def get_product(
        self, product_id: str, partition: str | None = None
    ) -> Result[Product, WorkflowError]:
        return await self.products.get(product_id, partition)

    async def list_products(self) -> Result[list[Product], WorkflowError]:
        return await self.products.list()

    # ───────────────────────────────────────────────────────────────────────────
    # Orders
    # ───────────────────────────────────────────────────────────────────────────

    async def create_order(self, data: NewOrder | Mapping[str, Any]) -> Result[Order, WorkflowError]:
        return await self.orders.create(data)

    async def edit_order(self, data: OrderEdit | Mapping[str, Any]) -> Result[Order, WorkflowError]:
        return await self.orders.edit(data)

    async def delete_order(self, order_id: str) -> Result[bool, WorkflowError]:
        return await self.orders.delete(order_id)

    async def get_order(
        self, order_id: str, partition: str | None = None
    ) -> Result[Order, WorkflowError]:
        return await self.orders.get(order_id, partition)

    async def list_orders(self) -> Result[list[Order], WorkflowError]:
        return await self.orders.list()

    async def order_lookups(self) -> Result[Lookups, WorkflowError]:
        return await self.orders.lookups()

    async def order_details(self, order: Order) -> Result[OrderDetails, WorkflowError]:
        return await self.orders.details(order)

    async def list_order_details(self) -> Result[list[OrderDetails], WorkflowError]:
        return await self.orders.list_details()

    # ───────────────────────────────────────────────────────────────────────────
    # Contracts
    # ───────────────────────────────────────────────────────────────────────────

    async def upload_contract(self, attachment: Attachment | None) -> Result[BlobRef, WorkflowError]:
        return await self.contracts.upload(attachment)


__all__ = ("BackOffice",)
