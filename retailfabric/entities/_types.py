"""
Entity types — core data structures.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, auto

type Scalar = str | int | float | bool | None
"""Property value. Entities are flat records of JSON scalars."""

ETAG_ANY = "*"
"""Version token that matches any stored version under IF_MATCH."""

# Characters the key space reserves for addressing.
_FORBIDDEN_KEY_CHARS = frozenset("/\\#?")
_MAX_KEY_LENGTH = 255


# ═══════════════════════════════════════════════════════════════════════════════
# Entity — Stored Record
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EntityKey:
    partition: str
    row: str


@dataclass(frozen=True, slots=True)
class Entity:
    """
    A stored record.

    etag: Opaque version token. None means never persisted.
    timestamp: Server-assigned last-write time. Ignored on write.
    """

    partition_key: str
    row_key: str
    properties: Mapping[str, Scalar] = field(default_factory=dict)
    etag: str | None = None
    timestamp: datetime | None = None

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.partition_key, self.row_key)

    @property
    def is_persisted(self) -> bool:
        return self.etag is not None

    def get(self, name: str, default: Scalar = None) -> Scalar:
        return self.properties.get(name, default)

    def with_etag(self, etag: str | None) -> Entity:
        return replace(self, etag=etag)


# ═══════════════════════════════════════════════════════════════════════════════
# Write Mode
# ═══════════════════════════════════════════════════════════════════════════════


class WriteMode(Enum):
    """
    REPLACE: Insert-or-Replace. Ignores the entity's etag, always wins.
    IF_MATCH: Replace only if the stored etag equals the entity's etag.
    """

    REPLACE = auto()
    IF_MATCH = auto()


REPLACE = WriteMode.REPLACE
IF_MATCH = WriteMode.IF_MATCH


@dataclass(frozen=True, slots=True)
class Written:
    """Receipt of a successful write."""

    etag: str
    timestamp: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class EntityErrorKind(Enum):
    """Kinds of entity store errors."""

    NOT_FOUND = auto()  # No row at (partition, row)
    CONFLICT = auto()  # IF_MATCH etag mismatch
    MISSING_COLLECTION = auto()  # ensure_collection() never called
    INVALID_KEY = auto()  # Empty, too long or reserved characters
    BACKEND = auto()  # Storage unreachable or failed


@dataclass(frozen=True, slots=True)
class EntityError:
    kind: EntityErrorKind
    message: str
    cause: Exception | None = None


class ScanFailed(Exception):
    """Raised from inside a lazy scan. Carries the typed error."""

    def __init__(self, error: EntityError) -> None:
        super().__init__(error.message)
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers shared by backends
# ═══════════════════════════════════════════════════════════════════════════════


def new_etag() -> str:
    return uuid.uuid4().hex


def etag_matches(supplied: str | None, stored: str) -> bool:
    if supplied is None:
        return False
    return supplied == ETAG_ANY or supplied == stored


def check_key(partition: str, row: str) -> EntityError | None:
    for name, value in (("partition", partition), ("row", row)):
        if not value:
            return EntityError(EntityErrorKind.INVALID_KEY, f"{name} key is empty")
        if len(value) > _MAX_KEY_LENGTH:
            return EntityError(
                EntityErrorKind.INVALID_KEY,
                f"{name} key longer than {_MAX_KEY_LENGTH} characters",
            )
        if _FORBIDDEN_KEY_CHARS.intersection(value):
            return EntityError(
                EntityErrorKind.INVALID_KEY,
                f"{name} key {value!r} contains one of / \\ # ?",
            )
    return None


def conflict(collection: str, key: EntityKey) -> EntityError:
    return EntityError(
        EntityErrorKind.CONFLICT,
        f"{collection}[{key.partition}/{key.row}] was modified by another writer",
    )


def not_found(collection: str, key: EntityKey) -> EntityError:
    return EntityError(
        EntityErrorKind.NOT_FOUND,
        f"{collection}[{key.partition}/{key.row}] not found",
    )


def missing_collection(collection: str) -> EntityError:
    return EntityError(
        EntityErrorKind.MISSING_COLLECTION,
        f"Collection {collection!r} does not exist",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Scalar",
    "ETAG_ANY",
    "EntityKey",
    "Entity",
    "WriteMode",
    "REPLACE",
    "IF_MATCH",
    "Written",
    "EntityErrorKind",
    "EntityError",
    "ScanFailed",
    "new_etag",
    "etag_matches",
    "check_key",
    "conflict",
    "not_found",
    "missing_collection",
)
