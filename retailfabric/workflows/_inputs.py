"""
Workflow inputs — pydantic models validated before any side effect.

Every workflow accepts either a model instance or a plain mapping:

    await customers.create(NewCustomer(name="Ann", email="ann@example.com", ...))
    await customers.create({"name": "Ann", "email": "ann@example.com", ...})

A ValidationError becomes WorkflowError(VALIDATION_FAILED, field=<first field>).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Annotated, Any

from kungfu import Error, Ok, Result
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from retailfabric.workflows._errors import WorkflowError
from retailfabric.workflows._models import (
    CustomerProfile,
    Order,
    OrderStatus,
    Product,
    tracking_id_for,
)

EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE = re.compile(r"^\+?[0-9 ()\-.]{7,20}$")

Text = Annotated[str, Field(min_length=1, max_length=255)]
Price = Annotated[float, Field(gt=0, allow_inf_nan=False)]


class _Input(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")


def _check_email(value: str) -> str:
    if not EMAIL.match(value):
        raise ValueError("Invalid email address")
    return value


def _check_phone(value: str) -> str:
    if not PHONE.match(value) or sum(c.isdigit() for c in value) < 7:
        raise ValueError("Invalid phone number")
    return value


Email = Annotated[str, Field(min_length=1, max_length=255), AfterValidator(_check_email)]
Phone = Annotated[str, Field(min_length=1, max_length=32), AfterValidator(_check_phone)]


# ═══════════════════════════════════════════════════════════════════════════════
# Customers
# ═══════════════════════════════════════════════════════════════════════════════


class NewCustomer(_Input):
    """customer_id defaults to the generated row key."""

    name: Text
    email: Email
    address: Text
    phone: Phone
    customer_id: Text | None = None

    def to_domain(self, *, partition: str, row_key: str, now: datetime) -> CustomerProfile:
        return CustomerProfile(
            partition_key=partition,
            row_key=row_key,
            customer_id=self.customer_id or row_key,
            name=self.name,
            email=self.email,
            address=self.address,
            phone=self.phone,
            registration_date=now,
        )


class CustomerEdit(_Input):
    """Full replacement of the editable fields. Registration date is kept."""

    row_key: Text
    etag: Text
    name: Text
    email: Email
    address: Text
    phone: Phone
    partition_key: Text | None = None
    customer_id: Text | None = None

    def apply(self, current: CustomerProfile) -> CustomerProfile:
        return replace(
            current,
            customer_id=self.customer_id or current.customer_id,
            name=self.name,
            email=self.email,
            address=self.address,
            phone=self.phone,
            etag=self.etag,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════


class NewProduct(_Input):
    product_id: Text
    name: Text
    price: Price
    description: str | None = None

    def to_domain(self, *, partition: str, image_url: str | None = None) -> Product:
        return Product(
            partition_key=partition,
            row_key=self.product_id,
            name=self.name,
            price=self.price,
            description=self.description or None,
            image_url=image_url,
        )


class ProductEdit(_Input):
    product_id: Text
    etag: Text
    name: Text
    price: Price
    description: str | None = None
    partition_key: Text | None = None

    def apply(self, current: Product, *, image_url: str | None) -> Product:
        return replace(
            current,
            name=self.name,
            price=self.price,
            description=self.description or None,
            image_url=image_url,
            etag=self.etag,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class NewOrder(_Input):
    """
    price: None means "use the product's current price". An explicit price
           must be > 0.
    order_id / partition_key: Generated / defaulted when absent.
    """

    customer_id: Text
    product_id: Text
    price: Price | None = None
    order_id: Text | None = None
    partition_key: Text | None = None

    def to_domain(
        self,
        *,
        partition: str,
        row_key: str,
        price: float,
        now: datetime,
    ) -> Order:
        return Order(
            partition_key=partition,
            row_key=row_key,
            customer_id=self.customer_id,
            product_id=self.product_id,
            price=price,
            tracking_id=tracking_id_for(row_key),
            order_date=now,
            status=OrderStatus.PENDING,
        )


class OrderEdit(_Input):
    """
    Order date and tracking id are kept from the stored row. An omitted
    status keeps the stored one.
    """

    order_id: Text
    etag: Text
    customer_id: Text
    product_id: Text
    price: Price
    status: OrderStatus | None = None
    partition_key: Text | None = None

    def apply(self, current: Order) -> Order:
        return replace(
            current,
            customer_id=self.customer_id,
            product_id=self.product_id,
            price=self.price,
            status=self.status if self.status is not None else current.status,
            etag=self.etag,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════════


def parse[M: BaseModel](model: type[M], data: M | Mapping[str, Any]) -> Result[M, WorkflowError]:
    if isinstance(data, model):
        return Ok(data)
    try:
        return Ok(model.model_validate(data))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        return Error(WorkflowError.validation(first["msg"], field))


__all__ = (
    "NewCustomer",
    "CustomerEdit",
    "NewProduct",
    "ProductEdit",
    "NewOrder",
    "OrderEdit",
    "parse",
)
