from kungfu import Error, Ok

from retailfabric.workflows import BackOffice, ErrorKind, Fabric

ANN = {
    "name": "Ann Example",
    "email": "ann@example.com",
    "address": "1 High St",
    "phone": "+44 20 7946 0000",
}


async def test_create_then_get(office: BackOffice, clock) -> None:
    created = (await office.create_customer(ANN)).value

    assert created.partition_key == "Customer"
    assert created.customer_id == created.row_key
    assert created.registration_date == clock.now
    assert created.etag is not None

    assert (await office.get_customer(created.row_key)).value == created


async def test_create_sends_three_customer_notices(office: BackOffice, fabric: Fabric, notices) -> None:
    created = (await office.create_customer({**ANN, "customer_id": "C100"})).value

    assert await notices(fabric, "customerqueue") == [
        "Customer created: C100 - Ann Example at 2024-01-01T12:00:00Z",
        "Send welcome: C100 - ann@example.com",
        "Validate customer: C100 - ann@example.com",
    ]
    assert created.customer_id == "C100"


async def test_every_create_gets_a_new_row_key(office: BackOffice) -> None:
    first = (await office.create_customer(ANN)).value
    second = (await office.create_customer(ANN)).value
    assert first.row_key != second.row_key
    assert len((await office.list_customers()).value) == 2


async def test_invalid_email_is_rejected_before_any_write(office: BackOffice, fabric: Fabric, notices) -> None:
    match await office.create_customer({**ANN, "email": "not-an-email"}):
        case Error(e):
            assert e.kind is ErrorKind.VALIDATION_FAILED
            assert e.field == "email"
            assert e.correlation_id
        case Ok(_):
            raise AssertionError("invalid email accepted")

    assert (await office.list_customers()).value == []
    assert await notices(fabric, "customerqueue") == []


async def test_missing_and_blank_fields_are_rejected(office: BackOffice) -> None:
    without_phone = {k: v for k, v in ANN.items() if k != "phone"}
    for data, field in ((without_phone, "phone"), ({**ANN, "name": "   "}, "name"), ({**ANN, "phone": "12"}, "phone")):
        result = await office.create_customer(data)
        assert isinstance(result, Error)
        assert result.value.kind is ErrorKind.VALIDATION_FAILED
        assert result.value.field == field


async def test_edit_with_current_etag(office: BackOffice, fabric: Fabric, notices, clock) -> None:
    created = (await office.create_customer(ANN)).value
    clock.advance(60)

    edited = await office.edit_customer({
        **ANN,
        "row_key": created.row_key,
        "etag": created.etag,
        "address": "2 Low Rd",
    })

    match edited:
        case Ok(profile):
            assert profile.address == "2 Low Rd"
            assert profile.registration_date == created.registration_date
            assert profile.etag != created.etag
        case Error(e):
            raise AssertionError(e)
    assert (await notices(fabric, "customerqueue"))[-1] == (
        f"Customer updated: {created.customer_id} at 2024-01-01T12:01:00Z"
    )


async def test_edit_with_stale_etag_conflicts(office: BackOffice) -> None:
    created = (await office.create_customer(ANN)).value
    fresh = (await office.edit_customer({**ANN, "row_key": created.row_key, "etag": created.etag, "name": "Ann B"})).value

    result = await office.edit_customer({**ANN, "row_key": created.row_key, "etag": created.etag, "name": "Ann C"})

    assert isinstance(result, Error)
    assert result.value.kind is ErrorKind.CONCURRENCY_CONFLICT
    assert (await office.get_customer(created.row_key)).value == fresh


async def test_edit_unknown_customer_is_not_found(office: BackOffice) -> None:
    result = await office.edit_customer({**ANN, "row_key": "ghost", "etag": "*"})
    assert isinstance(result, Error)
    assert result.value.kind is ErrorKind.NOT_FOUND
    assert result.value.field == "row_key"


async def test_delete_is_idempotent_and_notifies_once(office: BackOffice, fabric: Fabric, notices) -> None:
    created = (await office.create_customer(ANN)).value

    assert (await office.delete_customer(created.row_key)).value is True
    assert (await office.delete_customer(created.row_key)).value is False
    assert (await office.delete_customer("never-existed")).value is False

    deleted = [n for n in await notices(fabric, "customerqueue") if n.startswith("Customer deleted")]
    assert deleted == [f"Customer deleted: {created.row_key} at 2024-01-01T12:00:00Z"]
    assert isinstance(await office.get_customer(created.row_key), Error)


async def test_seed_is_repeatable(office: BackOffice, fabric: Fabric, notices) -> None:
    first = (await office.seed_customers()).value
    second = (await office.seed_customers()).value

    assert [(c.row_key, c.customer_id, c.name) for c in first] == [
        ("001", "C001", "John Doe"),
        ("002", "C002", "Jane Smith"),
    ]
    assert [c.row_key for c in second] == ["001", "002"]
    assert len((await office.list_customers()).value) == 2
    assert await notices(fabric, "customerqueue") == []


async def test_find_by_customer_id(office: BackOffice) -> None:
    await office.seed_customers()

    assert (await office.customers.find("C002")).value.name == "Jane Smith"
    assert (await office.customers.find("C999")).value is None
