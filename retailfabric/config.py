"""
Configuration — explicit settings passed to factories at start-up.

    from retailfabric.config import Settings, NOTIFY_FIRST

    settings = (
        Settings()
        .with_database("sqlite+aiosqlite:///retail.db")
        .with_blob_root("/var/lib/retail/blobs")
        .with_ordering(NOTIFY_FIRST)
    )

    # or from the process environment (RETAIL_DATABASE_URL, RETAIL_BLOB_ROOT, ...)
    settings = Settings.from_env()
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum

MEMORY = "memory://"


# ═══════════════════════════════════════════════════════════════════════════════
# Ordering — Notification vs Entity Write
# ═══════════════════════════════════════════════════════════════════════════════


class Ordering(Enum):
    """
    Order of the best-effort notification relative to the entity write.

    PERSIST_FIRST: Write the entity, then publish notifications.
                   A consumer never sees a notice for a row that failed to persist.

    NOTIFY_FIRST: Publish notifications, then write the entity.
                  A consumer may start work before the row is visible, and a
                  notice may exist for a write that then failed.

    Applied uniformly by every workflow.
    """

    PERSIST_FIRST = "persist_first"
    NOTIFY_FIRST = "notify_first"


PERSIST_FIRST = Ordering.PERSIST_FIRST
NOTIFY_FIRST = Ordering.NOTIFY_FIRST


# ═══════════════════════════════════════════════════════════════════════════════
# Layout — Persisted Names
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Layout:
    """Collection, container and queue names, plus default partitions."""

    customers: str = "CustomerProfiles"
    products: str = "Products"
    orders: str = "Orders"

    customer_partition: str = "Customer"
    product_partition: str = "Products"
    order_partition: str = "Orders"

    product_images: str = "productimages"
    contracts: str = "contracts"
    contracts_directory: str = "dummycontracts"

    customer_queue: str = "customerqueue"
    order_queue: str = "orderqueue"
    inventory_queue: str = "inventoryqueue"


# ═══════════════════════════════════════════════════════════════════════════════
# Settings — Full Configuration
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Connection and behaviour settings.

    database_url: SQLAlchemy async URL backing the entity store and the
        notification queue, or "memory://". None means "not configured".
    blob_root: Directory for the object store, or "memory://".
        None means "not configured".
    blob_base_url: Public URL prefix for blob locators. Defaults to file:// URIs.

    Note: Immutable. Each with_* method returns new Settings.
    """

    database_url: str | None = None
    blob_root: str | None = None
    blob_base_url: str | None = None
    ordering: Ordering = Ordering.PERSIST_FIRST
    layout: Layout = Layout()
    echo_sql: bool = False

    def with_database(self, url: str | None) -> Settings:
        return replace(self, database_url=url)

    def with_blob_root(self, root: str | None, *, base_url: str | None = None) -> Settings:
        return replace(self, blob_root=root, blob_base_url=base_url)

    def with_ordering(self, ordering: Ordering) -> Settings:
        return replace(self, ordering=ordering)

    def with_layout(self, layout: Layout) -> Settings:
        return replace(self, layout=layout)

    def with_echo(self, echo: bool = True) -> Settings:
        return replace(self, echo_sql=echo)

    @classmethod
    def in_memory(cls) -> Settings:
        """Every store in process memory. For tests and demos."""
        return cls(database_url=MEMORY, blob_root=MEMORY)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        prefix: str = "RETAIL_",
    ) -> Settings:
        """
        Read settings from environment variables.

            RETAIL_DATABASE_URL   sqlite+aiosqlite:///retail.db
            RETAIL_BLOB_ROOT      /var/lib/retail/blobs
            RETAIL_BLOB_BASE_URL  https://cdn.example.com/blobs
            RETAIL_ORDERING       persist_first | notify_first
            RETAIL_ECHO_SQL       1 | true | yes

        Raises ValueError on an unknown ordering.
        """
        env = os.environ if environ is None else environ

        def read(name: str) -> str | None:
            value = env.get(prefix + name, "").strip()
            return value or None

        ordering_raw = read("ORDERING")
        try:
            ordering = Ordering(ordering_raw.lower()) if ordering_raw else Ordering.PERSIST_FIRST
        except ValueError:
            choices = ", ".join(o.value for o in Ordering)
            raise ValueError(
                f"{prefix}ORDERING must be one of: {choices} (got {ordering_raw!r})"
            ) from None

        echo = (read("ECHO_SQL") or "").lower() in ("1", "true", "yes", "on")

        return cls(
            database_url=read("DATABASE_URL"),
            blob_root=read("BLOB_ROOT"),
            blob_base_url=read("BLOB_BASE_URL"),
            ordering=ordering,
            echo_sql=echo,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "MEMORY",
    "Ordering",
    "PERSIST_FIRST",
    "NOTIFY_FIRST",
    "Layout",
    "Settings",
)
