"""
Notifier — best-effort side channel over a NotificationQueue.

publish() never fails. Every body is attempted in order; failures are
logged and reported in the Delivery, never raised or returned as Error,
so a notice can never turn a successful write into a failed one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Error, Ok

from retailfabric.queues._store import NotificationQueue
from retailfabric.queues._types import QueueError, QueueErrorKind, Receipt

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Delivery:
    queue: str
    sent: tuple[Receipt, ...] = ()
    failed: tuple[QueueError, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failed


class Notifier:
    """
    Example:
        notifier = Notifier(queue)
        delivery = await notifier.publish(
            "inventoryqueue",
            "Product created: P1 at 2024-01-01T12:00:00Z",
            "Inventory update: Added P1 with quantity 1",
            correlation_id=cid,
        )
        delivery.complete  # False if any body was not accepted
    """

    def __init__(self, queue: NotificationQueue | None) -> None:
        self._queue = queue

    @property
    def queue(self) -> NotificationQueue | None:
        return self._queue

    async def _ensure(self, queue: NotificationQueue, name: str) -> QueueError | None:
        match await queue.ensure_queue(name):
            case Ok(_):
                return None
            case Error(e):
                return e

    async def publish(self, queue: str, *bodies: str, correlation_id: str = "-") -> Delivery:
        extra = {"correlation_id": correlation_id}

        if self._queue is None:
            error = QueueError(QueueErrorKind.BACKEND, "Notification queue is not configured")
            logger.warning("Dropped %d notice(s) for %s: %s", len(bodies), queue, error.message, extra=extra)
            return Delivery(queue, failed=(error,) * len(bodies))

        if (error := await self._ensure(self._queue, queue)) is not None:
            logger.warning("Dropped %d notice(s) for %s: %s", len(bodies), queue, error.message, extra=extra)
            return Delivery(queue, failed=(error,) * len(bodies))

        sent: list[Receipt] = []
        failed: list[QueueError] = []
        for body in bodies:
            match await self._queue.send(queue, body):
                case Ok(receipt):
                    sent.append(receipt)
                case Error(e):
                    logger.warning("Notice to %s not accepted: %s", queue, e.message, extra=extra)
                    failed.append(e)

        logger.debug("Published %d/%d notice(s) to %s", len(sent), len(bodies), queue, extra=extra)
        return Delivery(queue, tuple(sent), tuple(failed))


__all__ = (
    "Delivery",
    "Notifier",
)
