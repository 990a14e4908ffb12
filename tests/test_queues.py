import logging

import pytest
from kungfu import Error, Result

from retailfabric.queues import (
    MemoryQueue,
    NotificationQueue,
    Notifier,
    QueueError,
    QueueErrorKind,
    Receipt,
)


class FlakyQueue(MemoryQueue):
    """Rejects every body containing "boom"."""

    async def send(self, queue: str, body: str) -> Result[Receipt, QueueError]:
        if "boom" in body:
            return Error(QueueError(QueueErrorKind.BACKEND, "broker hiccup"))
        return await super().send(queue, body)


async def test_send_to_unknown_queue_fails(queue: NotificationQueue) -> None:
    result = await queue.send("orderqueue", "hello")
    assert isinstance(result, Error)
    assert result.value.kind is QueueErrorKind.MISSING_QUEUE


async def test_messages_are_kept_in_send_order(queue: NotificationQueue, clock) -> None:
    await queue.ensure_queue("orderqueue")
    receipts = []
    for body in ("first", "second", "third"):
        receipts.append((await queue.send("orderqueue", body)).value)

    messages = (await queue.peek("orderqueue")).value

    assert [m.body for m in messages] == ["first", "second", "third"]
    assert [m.receipt for m in messages] == receipts
    assert all(r.enqueued_at == clock.now for r in receipts)
    assert len({r.message_id for r in receipts}) == 3


async def test_peek_is_bounded_and_non_destructive(queue: NotificationQueue) -> None:
    await queue.ensure_queue("customerqueue")
    for n in range(5):
        await queue.send("customerqueue", f"m{n}")

    assert [m.body for m in (await queue.peek("customerqueue", 2)).value] == ["m0", "m1"]
    assert len((await queue.peek("customerqueue")).value) == 5


async def test_queues_are_independent(queue: NotificationQueue) -> None:
    await queue.ensure_queue("orderqueue")
    await queue.ensure_queue("inventoryqueue")
    await queue.send("orderqueue", "order")

    assert (await queue.peek("inventoryqueue")).value == []


async def test_ensure_queue_reports_creation_once(queue: NotificationQueue) -> None:
    assert (await queue.ensure_queue("orderqueue")).value is True
    assert (await queue.ensure_queue("orderqueue")).value is False


# ═══════════════════════════════════════════════════════════════════════════════
# Notifier
# ═══════════════════════════════════════════════════════════════════════════════


async def test_notifier_creates_the_queue_and_publishes_in_order(queue: NotificationQueue) -> None:
    delivery = await Notifier(queue).publish("inventoryqueue", "a", "b", correlation_id="cid")

    assert delivery.complete
    assert [r.queue for r in delivery.sent] == ["inventoryqueue", "inventoryqueue"]
    assert [m.body for m in (await queue.peek("inventoryqueue")).value] == ["a", "b"]


async def test_notifier_reports_rejected_bodies_without_failing(caplog: pytest.LogCaptureFixture) -> None:
    flaky = FlakyQueue()

    with caplog.at_level(logging.WARNING):
        delivery = await Notifier(flaky).publish("orderqueue", "one", "boom", "three")

    assert not delivery.complete
    assert len(delivery.sent) == 2
    assert [e.kind for e in delivery.failed] == [QueueErrorKind.BACKEND]
    assert flaky.bodies("orderqueue") == ["one", "three"]
    assert "broker hiccup" in caplog.text


async def test_notifier_without_queue_drops_everything() -> None:
    delivery = await Notifier(None).publish("orderqueue", "one", "two")

    assert delivery.sent == ()
    assert len(delivery.failed) == 2
