"""
Filesystem object store — one directory per container under a root.

Blocking file I/O runs in worker threads (asyncio.to_thread) so the event
loop is never blocked. Writes go to a temporary file and are renamed into
place, so readers see either the old or the new object.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

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


def _backend(action: str, e: Exception) -> BlobError:
    return BlobError(BlobErrorKind.BACKEND, f"Failed to {action}: {e}", e)


def _write_atomic(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, target)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _remove(target: Path, container_dir: Path) -> bool:
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    # Prune now-empty directories up to the container
    parent = target.parent
    while parent != container_dir:
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
    return True


class FileSystemObjectStore:
    """
    Object store on a local directory tree.

    root/
      productimages/
        P1/widget.png
      contracts/
        dummycontracts/lease_20240101120000.pdf

    Urls are file:// URIs unless base_url is given, in which case they are
    base_url/<container>/<path> (for a web server publishing root).
    """

    def __init__(self, root: str | os.PathLike[str], *, base_url: str | None = None) -> None:
        self._root = Path(root).resolve()
        self._locator = Locator(base_url or self._root.as_uri())

    @property
    def root(self) -> Path:
        return self._root

    def _container_dir(self, container: str) -> Path:
        return self._root / container

    def _target(self, container: str, path: str) -> Path:
        return self._container_dir(container).joinpath(*path.split("/"))

    async def _existing(self, container: str, path: str) -> Result[Path, BlobError]:
        """The container directory, once the names are valid and it exists."""
        if (invalid := check_container(container) or check_path(path)) is not None:
            return Error(invalid)
        directory = self._container_dir(container)
        if not await asyncio.to_thread(directory.is_dir):
            return Error(missing_container(container))
        return Ok(directory)

    async def ensure_container(self, name: str) -> Result[bool, BlobError]:
        if (invalid := check_container(name)) is not None:
            return Error(invalid)

        directory = self._container_dir(name)

        def create() -> bool:
            if directory.is_dir():
                return False
            directory.mkdir(parents=True, exist_ok=True)
            return True

        try:
            return Ok(await asyncio.to_thread(create))
        except OSError as e:
            return Error(_backend(f"create container {name!r}", e))

    async def put(
        self,
        container: str,
        path: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> Result[BlobRef, BlobError]:
        match await self._existing(container, path):
            case Error(_) as failed:
                return failed

        try:
            await asyncio.to_thread(_write_atomic, self._target(container, path), bytes(data))
        except OSError as e:
            return Error(_backend(f"write {container}/{path}", e))

        return Ok(BlobRef(
            container=container,
            path=path,
            url=self._locator.url(container, path),
            content_type=content_type,
            size=len(data),
        ))

    async def read(self, container: str, path: str) -> Result[bytes, BlobError]:
        match await self._existing(container, path):
            case Error(_) as failed:
                return failed

        try:
            return Ok(await asyncio.to_thread(self._target(container, path).read_bytes))
        except FileNotFoundError:
            return Error(BlobError(BlobErrorKind.NOT_FOUND, f"{container}/{path} not found"))
        except OSError as e:
            return Error(_backend(f"read {container}/{path}", e))

    async def delete(self, container: str, path: str) -> Result[bool, BlobError]:
        match await self._existing(container, path):
            case Error(_) as failed:
                return failed
            case Ok(container_dir):
                pass

        try:
            return Ok(await asyncio.to_thread(_remove, self._target(container, path), container_dir))
        except OSError as e:
            return Error(_backend(f"delete {container}/{path}", e))

    def locate(self, container: str, url: str) -> str | None:
        return self._locator.locate(container, url)

    async def close(self) -> None:
        pass


__all__ = ("FileSystemObjectStore",)
