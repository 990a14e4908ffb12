"""
Blob types — references, errors and locator arithmetic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from urllib.parse import quote, unquote

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class BlobRef:
    """
    Where a stored blob lives.

    url: Stable, dereferenceable locator. Same (container, path) always
         yields the same url.
    """

    container: str
    path: str
    url: str
    content_type: str
    size: int


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class BlobErrorKind(Enum):
    NOT_FOUND = auto()
    MISSING_CONTAINER = auto()
    INVALID_PATH = auto()
    BACKEND = auto()


@dataclass(frozen=True, slots=True)
class BlobError:
    kind: BlobErrorKind
    message: str
    cause: Exception | None = None


def missing_container(container: str) -> BlobError:
    return BlobError(BlobErrorKind.MISSING_CONTAINER, f"Container {container!r} does not exist")


def check_path(path: str) -> BlobError | None:
    """Relative, forward-slash separated, no empty or dot segments."""
    if not path or path.startswith("/") or "\\" in path:
        return BlobError(BlobErrorKind.INVALID_PATH, f"Invalid blob path {path!r}")
    if any(part in ("", ".", "..") for part in path.split("/")):
        return BlobError(BlobErrorKind.INVALID_PATH, f"Invalid blob path {path!r}")
    return None


def check_container(name: str) -> BlobError | None:
    """A single path segment."""
    if check_path(name) is not None or "/" in name:
        return BlobError(BlobErrorKind.INVALID_PATH, f"Invalid container {name!r}")
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Locator — (container, path) <-> url
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Locator:
    """
    Builds and parses blob urls under a base.

    Example:
        loc = Locator("https://cdn.example.com/blobs")
        loc.url("productimages", "P1/widget.png")
        # "https://cdn.example.com/blobs/productimages/P1/widget.png"
        loc.locate("productimages", "https://cdn.example.com/blobs/productimages/P1/widget.png")
        # "P1/widget.png"
    """

    base: str

    def _prefix(self, container: str) -> str:
        base = self.base if self.base.endswith("/") else self.base + "/"
        return f"{base}{quote(container)}/"

    def url(self, container: str, path: str) -> str:
        return self._prefix(container) + quote(path)

    def locate(self, container: str, url: str) -> str | None:
        prefix = self._prefix(container)
        if not url.startswith(prefix):
            return None
        path = unquote(url[len(prefix):])
        return path if check_path(path) is None else None


__all__ = (
    "DEFAULT_CONTENT_TYPE",
    "BlobRef",
    "BlobErrorKind",
    "BlobError",
    "missing_container",
    "check_path",
    "check_container",
    "Locator",
)
