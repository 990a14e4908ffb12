"""
Domain models and their entity codecs.

Models are immutable. Each carries its key, etag and timestamp so a value
read from the store can be edited and written back under IF_MATCH.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from pathlib import PurePosixPath

from retailfabric._types import as_utc
from retailfabric.blobs import DEFAULT_CONTENT_TYPE
from retailfabric.entities import Entity
from retailfabric.workflows._errors import CorruptEntity

TRACKING_PREFIX = "TRK-"
TRACKING_LENGTH = 8


def tracking_id_for(row_key: str) -> str:
    return TRACKING_PREFIX + row_key[:TRACKING_LENGTH]


class OrderStatus(StrEnum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# ═══════════════════════════════════════════════════════════════════════════════
# Decoding helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _where(entity: Entity) -> str:
    return f"{entity.partition_key}/{entity.row_key}"


def _text(entity: Entity, name: str) -> str:
    value = entity.get(name)
    if not isinstance(value, str):
        raise CorruptEntity(f"{_where(entity)}: {name} is missing or not text")
    return value


def _optional_text(entity: Entity, name: str) -> str | None:
    value = entity.get(name)
    if value is not None and not isinstance(value, str):
        raise CorruptEntity(f"{_where(entity)}: {name} is not text")
    return value


def _number(entity: Entity, name: str) -> float:
    value = entity.get(name)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise CorruptEntity(f"{_where(entity)}: {name} is missing or not a number")
    return float(value)


def _moment(entity: Entity, name: str) -> datetime:
    raw = _text(entity, name)
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError as e:
        raise CorruptEntity(f"{_where(entity)}: {name} is not an ISO timestamp") from e


# ═══════════════════════════════════════════════════════════════════════════════
# CustomerProfile
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CustomerProfile:
    partition_key: str
    row_key: str
    customer_id: str
    name: str
    email: str
    address: str
    phone: str
    registration_date: datetime
    etag: str | None = None
    timestamp: datetime | None = None

    def to_entity(self) -> Entity:
        return Entity(
            partition_key=self.partition_key,
            row_key=self.row_key,
            properties={
                "CustomerId": self.customer_id,
                "Name": self.name,
                "Email": self.email,
                "Address": self.address,
                "Phone": self.phone,
                "RegistrationDate": self.registration_date.isoformat(),
            },
            etag=self.etag,
        )

    @classmethod
    def from_entity(cls, entity: Entity) -> CustomerProfile:
        return cls(
            partition_key=entity.partition_key,
            row_key=entity.row_key,
            customer_id=_text(entity, "CustomerId"),
            name=_text(entity, "Name"),
            email=_text(entity, "Email"),
            address=_text(entity, "Address"),
            phone=_text(entity, "Phone"),
            registration_date=_moment(entity, "RegistrationDate"),
            etag=entity.etag,
            timestamp=entity.timestamp,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    """The row key is the product id."""

    partition_key: str
    row_key: str
    name: str
    price: float
    description: str | None = None
    image_url: str | None = None
    etag: str | None = None
    timestamp: datetime | None = None

    @property
    def product_id(self) -> str:
        return self.row_key

    def with_image(self, url: str | None) -> Product:
        return replace(self, image_url=url)

    def to_entity(self) -> Entity:
        return Entity(
            partition_key=self.partition_key,
            row_key=self.row_key,
            properties={
                "ProductId": self.row_key,
                "Name": self.name,
                "Price": self.price,
                "Description": self.description,
                "ImageUrl": self.image_url,
            },
            etag=self.etag,
        )

    @classmethod
    def from_entity(cls, entity: Entity) -> Product:
        return cls(
            partition_key=entity.partition_key,
            row_key=entity.row_key,
            name=_text(entity, "Name"),
            price=_number(entity, "Price"),
            description=_optional_text(entity, "Description"),
            image_url=_optional_text(entity, "ImageUrl"),
            etag=entity.etag,
            timestamp=entity.timestamp,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    """The row key is the order id. customer_id and product_id are not enforced."""

    partition_key: str
    row_key: str
    customer_id: str
    product_id: str
    price: float
    tracking_id: str
    order_date: datetime
    status: OrderStatus = OrderStatus.PENDING
    etag: str | None = None
    timestamp: datetime | None = None

    @property
    def order_id(self) -> str:
        return self.row_key

    def to_entity(self) -> Entity:
        return Entity(
            partition_key=self.partition_key,
            row_key=self.row_key,
            properties={
                "CustomerId": self.customer_id,
                "ProductId": self.product_id,
                "Price": self.price,
                "TrackingId": self.tracking_id,
                "OrderDate": self.order_date.isoformat(),
                "Status": self.status.value,
            },
            etag=self.etag,
        )

    @classmethod
    def from_entity(cls, entity: Entity) -> Order:
        raw_status = _text(entity, "Status")
        try:
            status = OrderStatus(raw_status)
        except ValueError as e:
            raise CorruptEntity(f"{_where(entity)}: unknown status {raw_status!r}") from e

        return cls(
            partition_key=entity.partition_key,
            row_key=entity.row_key,
            customer_id=_text(entity, "CustomerId"),
            product_id=_text(entity, "ProductId"),
            price=_number(entity, "Price"),
            tracking_id=_text(entity, "TrackingId"),
            order_date=_moment(entity, "OrderDate"),
            status=status,
            etag=entity.etag,
            timestamp=entity.timestamp,
        )


@dataclass(frozen=True, slots=True)
class OrderDetails:
    """An order with its references resolved at read time. None = dangling."""

    order: Order
    customer: CustomerProfile | None
    product: Product | None

    @property
    def dangling(self) -> tuple[str, ...]:
        missing: list[str] = []
        if self.customer is None:
            missing.append("customer_id")
        if self.product is None:
            missing.append("product_id")
        return tuple(missing)


@dataclass(frozen=True, slots=True)
class Lookups:
    """Choices for an order form."""

    customers: tuple[CustomerProfile, ...]
    products: tuple[Product, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Attachments
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Attachment:
    filename: str
    content: bytes = field(repr=False)
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def is_empty(self) -> bool:
        return not self.content

    @property
    def safe_name(self) -> str | None:
        """Last segment of the client-supplied name, or None if nothing usable is left."""
        name = PurePosixPath(self.filename.replace("\\", "/")).name.strip()
        if name in ("", ".", ".."):
            return None
        return name


__all__ = (
    "TRACKING_PREFIX",
    "tracking_id_for",
    "OrderStatus",
    "CustomerProfile",
    "Product",
    "Order",
    "OrderDetails",
    "Lookups",
    "Attachment",
)
