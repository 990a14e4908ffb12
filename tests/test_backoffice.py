from pathlib import Path

import pytest
from kungfu import Error, Ok

from retailfabric.config import Settings
from retailfabric.workflows import Attachment, BackOffice, ErrorKind, Order, OrderStatus, open_fabric
from retailfabric.workflows._models import tracking_id_for

CUSTOMER = {"name": "Ann", "email": "ann@example.com", "address": "1 High St", "phone": "555-0199"}
PRODUCT = {"product_id": "P1", "name": "Widget", "price": 9.99}
ORDER = {"customer_id": "C001", "product_id": "P1", "price": 1.0}


def sample_order(clock) -> Order:
    return Order("Orders", "o1", "C001", "P1", 1.0, tracking_id_for("o1"), clock.now, OrderStatus.PENDING)


async def test_nothing_configured_means_every_operation_is_unavailable(clock) -> None:
    async with await BackOffice.open(Settings(), clock=clock) as office:
        calls = [
            office.create_customer(CUSTOMER),
            office.edit_customer({**CUSTOMER, "row_key": "r", "etag": "*"}),
            office.delete_customer("r"),
            office.get_customer("r"),
            office.list_customers(),
            office.seed_customers(),
            office.create_product(PRODUCT),
            office.edit_product({**PRODUCT, "etag": "*"}),
            office.delete_product("P1"),
            office.get_product("P1"),
            office.list_products(),
            office.create_order(ORDER),
            office.edit_order({**ORDER, "order_id": "o1", "etag": "*"}),
            office.delete_order("o1"),
            office.get_order("o1"),
            office.list_orders(),
            office.order_lookups(),
            office.order_details(sample_order(clock)),
            office.list_order_details(),
            office.upload_contract(Attachment("lease.pdf", b"%PDF")),
        ]
        for call in calls:
            result = await call
            assert isinstance(result, Error)
            assert result.value.kind is ErrorKind.SERVICE_UNAVAILABLE
            assert result.value.correlation_id


async def test_products_need_the_object_store(clock) -> None:
    async with await BackOffice.open(Settings().with_database("memory://"), clock=clock) as office:
        product = await office.create_product(PRODUCT)
        customer = await office.create_customer(CUSTOMER)

    assert isinstance(product, Error)
    assert product.value.kind is ErrorKind.SERVICE_UNAVAILABLE
    assert isinstance(customer, Ok)


async def test_unreachable_database_is_unavailable_not_fatal(tmp_path: Path, clock) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'retail.db'}"

    fabric = await open_fabric(Settings().with_database(url), clock=clock)
    office = BackOffice(fabric)

    assert fabric.entities is None
    assert fabric.queue is None
    result = await office.list_orders()
    assert isinstance(result, Error)
    assert result.value.kind is ErrorKind.SERVICE_UNAVAILABLE
    await office.close()


async def test_upload_contract_is_stamped(clock) -> None:
    async with await BackOffice.open(Settings().with_blob_root("memory://"), clock=clock) as office:
        match await office.upload_contract(Attachment("lease agreement.pdf", b"%PDF-1.7", "application/pdf")):
            case Ok(ref):
                assert ref.container == "contracts"
                assert ref.path == "dummycontracts/lease agreement_20240101120000.pdf"
                assert ref.content_type == "application/pdf"
            case Error(e):
                raise AssertionError(e)


async def test_upload_contract_to_disk(tmp_path: Path, clock) -> None:
    async with await BackOffice.open(Settings().with_blob_root(str(tmp_path)), clock=clock) as office:
        ref = (await office.upload_contract(Attachment("lease.pdf", b"%PDF"))).value

    assert (tmp_path / "contracts" / "dummycontracts" / "lease_20240101120000.pdf").read_bytes() == b"%PDF"
    assert ref.url.startswith("file://")


@pytest.mark.parametrize("attachment", [None, Attachment("lease.pdf", b""), Attachment("..", b"x")])
async def test_bad_contract_uploads_are_rejected(attachment, clock) -> None:
    async with await BackOffice.open(Settings.in_memory(), clock=clock) as office:
        result = await office.upload_contract(attachment)

    assert isinstance(result, Error)
    assert (result.value.kind, result.value.field) == (ErrorKind.VALIDATION_FAILED, "file")


async def test_sqlite_state_survives_reopening(tmp_path: Path, clock) -> None:
    settings = Settings().with_database(f"sqlite+aiosqlite:///{tmp_path / 'retail.db'}").with_blob_root(str(tmp_path))

    async with await BackOffice.open(settings, clock=clock) as office:
        await office.seed_customers()

    async with await BackOffice.open(settings, clock=clock) as office:
        customers = (await office.list_customers()).value

    assert [c.customer_id for c in customers] == ["C001", "C002"]
