"""
Queues — at-least-once notification queues and a best-effort notifier.

Quick Start:
    from retailfabric.queues import MemoryQueue, Notifier

    queue = MemoryQueue()
    notifier = Notifier(queue)

    # Ensures the queue, sends in order, never fails
    delivery = await notifier.publish("customerqueue", "Customer created: ...")
"""

from retailfabric.queues._types import (
    Message,
    QueueError,
    QueueErrorKind,
    Receipt,
)
from retailfabric.queues._store import DEFAULT_PEEK, MemoryQueue, NotificationQueue
from retailfabric.queues._sqlalchemy import SQLAlchemyQueue
from retailfabric.queues._notifier import Delivery, Notifier

__all__ = (
    "Message",
    "Receipt",
    "QueueError",
    "QueueErrorKind",
    "DEFAULT_PEEK",
    "NotificationQueue",
    "MemoryQueue",
    "SQLAlchemyQueue",
    "Delivery",
    "Notifier",
)
