"""
Blobs — containers of binary objects addressed by path.

Quick Start:
    from retailfabric.blobs import FileSystemObjectStore

    blobs = FileSystemObjectStore("/var/lib/retail/blobs")
    await blobs.ensure_container("productimages")

    match await blobs.put("productimages", "P1/widget.png", data, "image/png"):
        case Ok(ref): image_url = ref.url
        case Error(e): ...

    # Later: url back to path, then delete (idempotent)
    if (path := blobs.locate("productimages", image_url)) is not None:
        await blobs.delete("productimages", path)
"""

from retailfabric.blobs._types import (
    DEFAULT_CONTENT_TYPE,
    BlobError,
    BlobErrorKind,
    BlobRef,
    Locator,
)
from retailfabric.blobs._store import MemoryObjectStore, ObjectStore
from retailfabric.blobs._filesystem import FileSystemObjectStore

__all__ = (
    "DEFAULT_CONTENT_TYPE",
    "BlobRef",
    "BlobError",
    "BlobErrorKind",
    "Locator",
    "ObjectStore",
    "MemoryObjectStore",
    "FileSystemObjectStore",
)
