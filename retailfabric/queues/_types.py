"""
Queue types — messages, receipts and errors.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


@dataclass(frozen=True, slots=True)
class Receipt:
    """Proof of acceptance. Says nothing about processing."""

    message_id: str
    queue: str
    enqueued_at: datetime


@dataclass(frozen=True, slots=True)
class Message:
    message_id: str
    queue: str
    body: str
    enqueued_at: datetime

    @property
    def receipt(self) -> Receipt:
        return Receipt(self.message_id, self.queue, self.enqueued_at)


class QueueErrorKind(Enum):
    MISSING_QUEUE = auto()
    BACKEND = auto()


@dataclass(frozen=True, slots=True)
class QueueError:
    kind: QueueErrorKind
    message: str
    cause: Exception | None = None


def missing_queue(name: str) -> QueueError:
    return QueueError(QueueErrorKind.MISSING_QUEUE, f"Queue {name!r} does not exist")


def new_message_id() -> str:
    return uuid.uuid4().hex


__all__ = (
    "Receipt",
    "Message",
    "QueueErrorKind",
    "QueueError",
    "missing_queue",
    "new_message_id",
)
