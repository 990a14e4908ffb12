import asyncio

from kungfu import Error, Ok

from retailfabric.entities import (
    ETAG_ANY,
    IF_MATCH,
    Entity,
    EntityErrorKind,
    EntityStore,
    Query,
)

COLLECTION = "Products"


def widget(price: float = 9.99, *, etag: str | None = None) -> Entity:
    return Entity("Products", "P1", {"Name": "Widget", "Price": price}, etag=etag)


async def prepared(store: EntityStore) -> EntityStore:
    assert isinstance(await store.ensure_collection(COLLECTION), Ok)
    return store


async def test_ensure_collection_reports_creation_once(entity_store: EntityStore) -> None:
    assert (await entity_store.ensure_collection(COLLECTION)).value is True
    assert (await entity_store.ensure_collection(COLLECTION)).value is False


async def test_upsert_then_get_round_trips(entity_store: EntityStore, clock) -> None:
    store = await prepared(entity_store)

    match await store.upsert(COLLECTION, widget()):
        case Ok(written):
            pass
        case Error(e):
            raise AssertionError(e)

    match await store.get(COLLECTION, "Products", "P1"):
        case Ok(entity):
            assert dict(entity.properties) == {"Name": "Widget", "Price": 9.99}
            assert entity.etag == written.etag
            assert entity.timestamp == clock.now
        case Error(e):
            raise AssertionError(e)


async def test_every_write_gets_a_fresh_etag(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    first = (await store.upsert(COLLECTION, widget())).value
    second = (await store.upsert(COLLECTION, widget(8.99))).value
    assert first.etag != second.etag


async def test_if_match_with_current_etag_succeeds(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    written = (await store.upsert(COLLECTION, widget())).value

    result = await store.upsert(COLLECTION, widget(8.99, etag=written.etag), IF_MATCH)

    assert isinstance(result, Ok)
    assert (await store.get(COLLECTION, "Products", "P1")).value.get("Price") == 8.99


async def test_stale_etag_conflicts_and_leaves_row_untouched(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    stale = (await store.upsert(COLLECTION, widget())).value.etag
    current = (await store.upsert(COLLECTION, widget(7.50))).value.etag

    match await store.upsert(COLLECTION, widget(1.00, etag=stale), IF_MATCH):
        case Error(e):
            assert e.kind is EntityErrorKind.CONFLICT
        case Ok(_):
            raise AssertionError("stale etag was accepted")

    stored = (await store.get(COLLECTION, "Products", "P1")).value
    assert stored.get("Price") == 7.50
    assert stored.etag == current


async def test_if_match_without_etag_conflicts(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    await store.upsert(COLLECTION, widget())

    result = await store.upsert(COLLECTION, widget(1.00), IF_MATCH)

    assert isinstance(result, Error)
    assert result.value.kind is EntityErrorKind.CONFLICT


async def test_wildcard_etag_matches_any_version(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    await store.upsert(COLLECTION, widget())

    assert isinstance(await store.upsert(COLLECTION, widget(5.00, etag=ETAG_ANY), IF_MATCH), Ok)


async def test_if_match_on_missing_row_is_not_found(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)

    result = await store.upsert(COLLECTION, widget(etag=ETAG_ANY), IF_MATCH)

    assert isinstance(result, Error)
    assert result.value.kind is EntityErrorKind.NOT_FOUND


async def test_get_missing_row_is_not_found(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    result = await store.get(COLLECTION, "Products", "nope")
    assert isinstance(result, Error)
    assert result.value.kind is EntityErrorKind.NOT_FOUND


async def test_operations_on_unknown_collection(entity_store: EntityStore) -> None:
    for result in (
        await entity_store.get("Ghosts", "p", "r"),
        await entity_store.upsert("Ghosts", Entity("p", "r")),
        await entity_store.delete("Ghosts", "p", "r"),
        await entity_store.query("Ghosts").collect(),
    ):
        assert isinstance(result, Error)
        assert result.value.kind is EntityErrorKind.MISSING_COLLECTION


async def test_reserved_characters_in_keys_are_rejected(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    for partition, row in (("Products", ""), ("Prod/ucts", "P1"), ("Products", "P#1"), ("Products", "x" * 256)):
        result = await store.upsert(COLLECTION, Entity(partition, row, {"Name": "x"}))
        assert isinstance(result, Error)
        assert result.value.kind is EntityErrorKind.INVALID_KEY


async def test_deleting_missing_row_twice_succeeds(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    await store.upsert(COLLECTION, widget())

    assert (await store.delete(COLLECTION, "Products", "P1")).value is True
    assert (await store.delete(COLLECTION, "Products", "P1")).value is False
    assert (await store.delete(COLLECTION, "Products", "P1")).value is False


async def test_query_over_empty_collection_is_empty(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)

    assert [e async for e in store.query(COLLECTION)] == []
    assert (await store.query(COLLECTION).collect()).value == []
    assert (await store.query(COLLECTION).first()).value is None


async def test_query_filters_by_partition_row_and_property(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    for partition, row, customer in (
        ("Orders", "o1", "C001"),
        ("Orders", "o2", "C002"),
        ("Archive", "o3", "C001"),
    ):
        await store.upsert(COLLECTION, Entity(partition, row, {"CustomerId": customer}))

    in_orders = await store.query(COLLECTION, Query().in_partition("Orders")).collect()
    by_customer = await store.query(COLLECTION, Query().where("CustomerId", "C001")).collect()
    by_row = await store.query(COLLECTION, Query().with_row("o3")).first()
    by_predicate = await store.query(COLLECTION, Query().matching(lambda e: e.row_key.endswith("2"))).collect()

    assert [e.row_key for e in in_orders.value] == ["o1", "o2"]
    assert sorted(e.row_key for e in by_customer.value) == ["o1", "o3"]
    assert by_row.value.partition_key == "Archive"
    assert [e.row_key for e in by_predicate.value] == ["o2"]


async def test_scan_is_lazy_and_restartable(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    scan = store.query(COLLECTION)

    await store.upsert(COLLECTION, widget())
    first_pass = [e.row_key async for e in scan]
    await store.upsert(COLLECTION, Entity("Products", "P2", {"Name": "Gadget"}))
    second_pass = [e.row_key async for e in scan]

    assert first_pass == ["P1"]
    assert second_pass == ["P1", "P2"]


async def test_entities_passed_in_are_not_mutated(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    entity = widget()
    await store.upsert(COLLECTION, entity)
    assert entity.etag is None
    assert entity.timestamp is None


async def test_concurrent_conditional_writers_have_one_winner(entity_store: EntityStore) -> None:
    store = await prepared(entity_store)
    etag = (await store.upsert(COLLECTION, widget())).value.etag
    prices = (1.0, 2.0, 3.0, 4.0)

    results = await asyncio.gather(*(
        store.upsert(COLLECTION, widget(price, etag=etag), IF_MATCH)
        for price in prices
    ))

    winners = [price for price, r in zip(prices, results) if isinstance(r, Ok)]
    conflicts = [r.value.kind for r in results if isinstance(r, Error)]
    assert len(winners) == 1
    assert conflicts == [EntityErrorKind.CONFLICT] * 3
    assert (await store.get(COLLECTION, "Products", "P1")).value.properties["Price"] == winners[0]
