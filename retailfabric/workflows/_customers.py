"""Customer profiles: create, edit, delete, read, seed."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from kungfu import Error, Ok, Result

from retailfabric.entities import IF_MATCH, REPLACE, Query
from retailfabric.workflows import _messages as msg
from retailfabric.workflows._base import Call, Workflow
from retailfabric.workflows._errors import WorkflowError
from retailfabric.workflows._inputs import CustomerEdit, NewCustomer, parse
from retailfabric.workflows._models import CustomerProfile

SAMPLE_CUSTOMERS: tuple[tuple[str, NewCustomer], ...] = (
    ("001", NewCustomer(
        customer_id="C001",
        name="John Doe",
        email="john.doe@example.com",
        address="123 Main St",
        phone="555-0101",
    )),
    ("002", NewCustomer(
        customer_id="C002",
        name="Jane Smith",
        email="jane.smith@example.com",
        address="456 Oak Ave",
        phone="555-0102",
    )),
)


class CustomerWorkflow(Workflow):
    """
    Example:
        customers = CustomerWorkflow(fabric)
        match await customers.create({"name": "Ann", "email": "ann@example.com",
                                      "address": "1 High St", "phone": "555-0199"}):
            case Ok(profile): profile.row_key, profile.etag
            case Error(e): e.kind, e.field
    """

    async def create(
        self, data: NewCustomer | Mapping[str, Any]
    ) -> Result[CustomerProfile, WorkflowError]:
        call = Call("create customer")
        match parse(NewCustomer, data):
            case Error(e):
                return self._reject(call, e)
            case Ok(new):
                pass

        if (missing := self._unavailable(queue=True)) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed

        now = self._now()
        customer = new.to_domain(
            partition=self.layout.customer_partition,
            row_key=str(uuid.uuid4()),
            now=now,
        )
        result = await self._write_and_notify(
            call,
            lambda: self._upsert(call, self.layout.customers, customer, REPLACE),
            self.layout.customer_queue,
            (
                msg.customer_created(customer, now),
                msg.send_welcome(customer),
                msg.validate_customer(customer),
            ),
        )
        if isinstance(result, Ok):
            self._log.info("Customer %s created as %s", customer.customer_id, customer.row_key, extra=call.extra)
        return result

    async def edit(
        self, data: CustomerEdit | Mapping[str, Any]
    ) -> Result[CustomerProfile, WorkflowError]:
        """Replace the editable fields if the caller's etag is still current."""
        call = Call("edit customer")
        match parse(CustomerEdit, data):
            case Error(e):
                return self._reject(call, e)
            case Ok(edit):
                pass

        if (missing := self._unavailable(queue=True)) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed

        partition = edit.partition_key or self.layout.customer_partition
        match await self._get(
            call, CustomerProfile, self.layout.customers, partition, edit.row_key, field="row_key"
        ):
            case Error(_) as failed_read:
                return failed_read
            case Ok(current):
                pass

        updated = edit.apply(current)
        result = await self._write_and_notify(
            call,
            lambda: self._upsert(call, self.layout.customers, updated, IF_MATCH),
            self.layout.customer_queue,
            (msg.customer_updated(updated, self._now()),),
        )
        if isinstance(result, Ok):
            self._log.info("Customer %s updated", edit.row_key, extra=call.extra)
        return result

    async def delete(self, row_key: str, partition: str | None = None) -> Result[bool, WorkflowError]:
        """Ok(True) if the profile existed. Deleting a missing profile succeeds."""
        call = Call("delete customer")
        if (missing := self._unavailable(queue=True)) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed

        partition = partition or self.layout.customer_partition
        match await self._lookup(call, CustomerProfile, self.layout.customers, partition, row_key):
            case Error(_) as failed_read:
                return failed_read
            case Ok(None):
                self._log.warning("Customer %s not found for deletion", row_key, extra=call.extra)
                return Ok(False)

        result = await self._write_and_notify(
            call,
            lambda: self._delete(call, self.layout.customers, partition, row_key),
            self.layout.customer_queue,
            (msg.customer_deleted(row_key, self._now()),),
        )
        if isinstance(result, Ok):
            self._log.info("Customer %s deleted", row_key, extra=call.extra)
        return result

    async def get(self, row_key: str, partition: str | None = None) -> Result[CustomerProfile, WorkflowError]:
        call = Call("get customer")
        if (missing := self._unavailable()) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed
        return await self._get(
            call,
            CustomerProfile,
            self.layout.customers,
            partition or self.layout.customer_partition,
            row_key,
            field="row_key",
        )

    async def find(self, customer_id: str) -> Result[CustomerProfile | None, WorkflowError]:
        """Profile whose customer_id (not row key) matches, or None."""
        call = Call("find customer")
        if (missing := self._unavailable()) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed

        query = Query().in_partition(self.layout.customer_partition).where("CustomerId", customer_id)
        match await self._list(call, CustomerProfile, self.layout.customers, query):
            case Ok(found):
                return Ok(found[0] if found else None)
            case Error(_) as failed_read:
                return failed_read

    async def list(self) -> Result[list[CustomerProfile], WorkflowError]:
        call = Call("list customers")
        if (missing := self._unavailable()) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed
        return await self._list(call, CustomerProfile, self.layout.customers)

    async def seed(self) -> Result[list[CustomerProfile], WorkflowError]:
        """Insert-or-replace the sample profiles. Safe to repeat."""
        call = Call("seed customers")
        if (missing := self._unavailable()) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.customers)) is not None:
            return failed

        now = self._now()
        seeded: list[CustomerProfile] = []
        for row_key, sample in SAMPLE_CUSTOMERS:
            profile = sample.to_domain(partition=self.layout.customer_partition, row_key=row_key, now=now)
            match await self._upsert(call, self.layout.customers, profile, REPLACE):
                case Ok(written):
                    seeded.append(written)
                case Error(_) as failed_write:
                    return failed_write

        self._log.info("Seeded %d sample customers", len(seeded), extra=call.extra)
        return Ok(seeded)


__all__ = (
    "SAMPLE_CUSTOMERS",
    "CustomerWorkflow",
)
