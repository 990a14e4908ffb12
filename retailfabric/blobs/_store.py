"""
Object store — storage protocol and in-memory backend.

Last write wins. Deletes are idempotent. No versioning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from kungfu import Error, Ok, Result

from retailfabric.blobs._types import (
    DEFAULT_CONTENT_TYPE,
    BlobError,
    BlobErrorKind,
    BlobRef,
    Locator,
    check_container,
    check_path,
    missing_container,
)


@runtime_checkable
class ObjectStore(Protocol):
    """Containers of named binary objects."""

    async def ensure_container(self, name: str) -> Result[bool, BlobError]:
        """Create the container if absent. Ok(True) if it was created."""
        ...

    async def put(
        self,
        container: str,
        path: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> Result[BlobRef, BlobError]:
        """Store data, overwriting any existing object at path."""
        ...

    async def read(self, container: str, path: str) -> Result[bytes, BlobError]:
        ...

    async def delete(self, container: str, path: str) -> Result[bool, BlobError]:
        """Ok(True) if the object existed."""
        ...

    def locate(self, container: str, url: str) -> str | None:
        """Path inside container for a url this store produced, else None."""
        ...

    async def close(self) -> None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Blob:
    data: bytes
    content_type: str


class MemoryObjectStore:
    """
    In-process object store. Urls look like memory://<container>/<path>.

    Example:
        blobs = MemoryObjectStore()
        await blobs.ensure_container("productimages")
        match await blobs.put("productimages", "P1/a.png", b"...", "image/png"):
            case Ok(ref): print(ref.url)  # memory://productimages/P1/a.png
            case Error(e): ...
    """

    def __init__(self, base_url: str = "memory://") -> None:
        self._locator = Locator(base_url)
        self._containers: dict[str, dict[str, _Blob]] = {}

    def _existing(self, container: str, path: str) -> Result[dict[str, _Blob], BlobError]:
        if (invalid := check_container(container) or check_path(path)) is not None:
            return Error(invalid)
        blobs = self._containers.get(container)
        if blobs is None:
            return Error(missing_container(container))
        return Ok(blobs)

    async def ensure_container(self, name: str) -> Result[bool, BlobError]:
        if (invalid := check_container(name)) is not None:
            return Error(invalid)
        if name in self._containers:
            return Ok(False)
        self._containers[name] = {}
        return Ok(True)

    async def put(
        self,
        container: str,
        path: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> Result[BlobRef, BlobError]:
        match self._existing(container, path):
            case Error(_) as failed:
                return failed
            case Ok(blobs):
                pass

        blobs[path] = _Blob(bytes(data), content_type)
        return Ok(BlobRef(
            container=container,
            path=path,
            url=self._locator.url(container, path),
            content_type=content_type,
            size=len(data),
        ))

    async def read(self, container: str, path: str) -> Result[bytes, BlobError]:
        match self._existing(container, path):
            case Error(_) as failed:
                return failed
            case Ok(blobs):
                pass
        blob = blobs.get(path)
        if blob is None:
            return Error(BlobError(BlobErrorKind.NOT_FOUND, f"{container}/{path} not found"))
        return Ok(blob.data)

    async def delete(self, container: str, path: str) -> Result[bool, BlobError]:
        match self._existing(container, path):
            case Error(_) as failed:
                return failed
            case Ok(blobs):
                return Ok(blobs.pop(path, None) is not None)

    def locate(self, container: str, url: str) -> str | None:
        return self._locator.locate(container, url)

    async def close(self) -> None:
        pass

    # Test helpers

    def paths(self, container: str) -> list[str]:
        return sorted(self._containers.get(container, {}))


__all__ = (
    "ObjectStore",
    "MemoryObjectStore",
)
