"""
Workflow errors — the taxonomy callers see.

Store-level errors (EntityError, BlobError) are mapped exactly once, here.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from retailfabric.blobs import BlobError, BlobErrorKind
from retailfabric.entities import EntityError, EntityErrorKind


class ErrorKind(Enum):
    VALIDATION_FAILED = "validation_failed"  # Bad input, no side effects
    NOT_FOUND = "not_found"  # Referenced key absent
    CONCURRENCY_CONFLICT = "concurrency_conflict"  # Stale etag
    DEPENDENCY_FAILED = "dependency_failed"  # Store unreachable or failed
    SERVICE_UNAVAILABLE = "service_unavailable"  # Store not configured


@dataclass(frozen=True, slots=True)
class WorkflowError:
    """
    kind: What went wrong, for branching.
    message: Human-readable detail. Generic for dependency failures.
    field: Offending input field for VALIDATION_FAILED / NOT_FOUND.
    correlation_id: Ties the error to the invocation's log lines.
    """

    kind: ErrorKind
    message: str
    field: str | None = None
    correlation_id: str | None = None

    @classmethod
    def validation(cls, message: str, field: str | None = None) -> WorkflowError:
        return cls(ErrorKind.VALIDATION_FAILED, message, field)

    @classmethod
    def not_found(cls, message: str, field: str | None = None) -> WorkflowError:
        return cls(ErrorKind.NOT_FOUND, message, field)

    @classmethod
    def conflict(cls, message: str) -> WorkflowError:
        return cls(ErrorKind.CONCURRENCY_CONFLICT, message)

    @classmethod
    def dependency(
        cls, message: str = "A storage dependency failed", field: str | None = None
    ) -> WorkflowError:
        return cls(ErrorKind.DEPENDENCY_FAILED, message, field)

    @classmethod
    def unavailable(cls, component: str) -> WorkflowError:
        return cls(ErrorKind.SERVICE_UNAVAILABLE, f"{component} is not configured")

    def with_correlation(self, correlation_id: str) -> WorkflowError:
        return replace(self, correlation_id=correlation_id)


class WorkflowFailure(Exception):
    """Raised inside the order graph; turned back into Error at its boundary."""

    def __init__(self, error: WorkflowError) -> None:
        super().__init__(error.message)
        self.error = error


class CorruptEntity(ValueError):
    """A stored row could not be decoded into its domain type."""


# ═══════════════════════════════════════════════════════════════════════════════
# Store error mapping
# ═══════════════════════════════════════════════════════════════════════════════


def from_entity_error(e: EntityError, *, field: str | None = None) -> WorkflowError:
    match e.kind:
        case EntityErrorKind.NOT_FOUND:
            return WorkflowError.not_found(e.message, field)
        case EntityErrorKind.CONFLICT:
            return WorkflowError.conflict(e.message)
        case EntityErrorKind.INVALID_KEY:
            return WorkflowError.validation(e.message, field)
        case _:
            return WorkflowError.dependency(field=field)


def from_blob_error(e: BlobError, *, field: str | None = None) -> WorkflowError:
    match e.kind:
        case BlobErrorKind.INVALID_PATH:
            return WorkflowError.validation(e.message, field)
        case BlobErrorKind.NOT_FOUND:
            return WorkflowError.not_found(e.message, field)
        case _:
            return WorkflowError.dependency(field=field)


__all__ = (
    "ErrorKind",
    "WorkflowError",
    "WorkflowFailure",
    "CorruptEntity",
    "from_entity_error",
    "from_blob_error",
)
