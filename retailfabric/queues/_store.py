"""
Notification queue — protocol and in-memory backend.

Delivery is at-least-once. There is no consumer here: messages are
accepted and kept for whoever drains the queue. peek() is a
non-destructive look for operators and tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from kungfu import Error, Ok, Result

from retailfabric._types import Clock, utcnow
from retailfabric.queues._types import (
    Message,
    QueueError,
    Receipt,
    missing_queue,
    new_message_id,
)

DEFAULT_PEEK = 32


@runtime_checkable
class NotificationQueue(Protocol):
    async def ensure_queue(self, name: str) -> Result[bool, QueueError]:
        """Create the queue if absent. Ok(True) if it was created."""
        ...

    async def send(self, queue: str, body: str) -> Result[Receipt, QueueError]:
        """Enqueue body. Returns once the message is accepted."""
        ...

    async def peek(self, queue: str, limit: int = DEFAULT_PEEK) -> Result[list[Message], QueueError]:
        """Oldest messages first, without removing them."""
        ...

    async def close(self) -> None:
        ...


class MemoryQueue:
    """
    In-process queues. FIFO per queue.

    Example:
        queue = MemoryQueue()
        await queue.ensure_queue("orderqueue")
        await queue.send("orderqueue", "Order created: 1f2e... at 2024-01-01T12:00:00Z")
        assert queue.bodies("orderqueue") == ["Order created: ..."]
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._queues: dict[str, list[Message]] = {}

    async def ensure_queue(self, name: str) -> Result[bool, QueueError]:
        if name in self._queues:
            return Ok(False)
        self._queues[name] = []
        return Ok(True)

    async def send(self, queue: str, body: str) -> Result[Receipt, QueueError]:
        messages = self._queues.get(queue)
        if messages is None:
            return Error(missing_queue(queue))
        message = Message(new_message_id(), queue, body, self._clock())
        messages.append(message)
        return Ok(message.receipt)

    async def peek(self, queue: str, limit: int = DEFAULT_PEEK) -> Result[list[Message], QueueError]:
        messages = self._queues.get(queue)
        if messages is None:
            return Error(missing_queue(queue))
        return Ok(messages[:limit])

    async def close(self) -> None:
        pass

    # Test helpers

    def bodies(self, queue: str) -> list[str]:
        return [m.body for m in self._queues.get(queue, [])]

    def clear(self) -> None:
        for messages in self._queues.values():
            messages.clear()


__all__ = (
    "DEFAULT_PEEK",
    "NotificationQueue",
    "MemoryQueue",
)
