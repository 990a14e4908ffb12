"""
SQLAlchemy notification queue — tables `queues` and `queue_messages`.

A durable outbox: messages are committed rows, drained by an external
consumer in `seq` order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Error, Ok, Result

from retailfabric._sql import Base, insert_for
from retailfabric._types import Clock, as_utc, utcnow
from retailfabric.queues._store import DEFAULT_PEEK
from retailfabric.queues._types import (
    Message,
    QueueError,
    QueueErrorKind,
    Receipt,
    missing_queue,
    new_message_id,
)


class QueueTable(Base):
    __tablename__ = "queues"

    name: Mapped[str] = mapped_column(String(63), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QueueMessageTable(Base):
    __tablename__ = "queue_messages"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    queue: Mapped[str] = mapped_column(
        String(63), ForeignKey("queues.name", ondelete="CASCADE"), nullable=False, index=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    enqueued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_message(self) -> Message:
        return Message(
            message_id=self.message_id,
            queue=self.queue,
            body=self.body,
            enqueued_at=as_utc(self.enqueued_at),
        )


def _backend(action: str, e: Exception) -> QueueError:
    return QueueError(QueueErrorKind.BACKEND, f"Failed to {action}: {e}", e)


class SQLAlchemyQueue:
    """Notification queue on a SQLAlchemy async engine (see create_schema())."""

    def __init__(self, engine: AsyncEngine, clock: Clock = utcnow) -> None:
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        self._insert = insert_for(engine)
        self._clock = clock

    async def ensure_queue(self, name: str) -> Result[bool, QueueError]:
        try:
            async with self._sessions() as session:
                stmt = (
                    self._insert(QueueTable)
                    .values(name=name, created_at=self._clock())
                    .on_conflict_do_nothing(index_elements=["name"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(_backend(f"create queue {name!r}", e))

    async def send(self, queue: str, body: str) -> Result[Receipt, QueueError]:
        try:
            async with self._sessions() as session:
                if await session.get(QueueTable, queue) is None:
                    return Error(missing_queue(queue))

                row = QueueMessageTable(
                    message_id=new_message_id(),
                    queue=queue,
                    body=body,
                    enqueued_at=self._clock(),
                )
                session.add(row)
                await session.commit()
                return Ok(row.to_message().receipt)
        except Exception as e:
            return Error(_backend(f"send to {queue!r}", e))

    async def peek(self, queue: str, limit: int = DEFAULT_PEEK) -> Result[list[Message], QueueError]:
        try:
            async with self._sessions() as session:
                if await session.get(QueueTable, queue) is None:
                    return Error(missing_queue(queue))

                stmt = (
                    select(QueueMessageTable)
                    .where(QueueMessageTable.queue == queue)
                    .order_by(QueueMessageTable.seq)
                    .limit(limit)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([row.to_message() for row in rows])
        except Exception as e:
            return Error(_backend(f"peek {queue!r}", e))

    async def close(self) -> None:
        # Engine is owned by the caller
        pass


__all__ = (
    "QueueTable",
    "QueueMessageTable",
    "SQLAlchemyQueue",
)
