from pathlib import Path

from kungfu import Error, Ok

from retailfabric.blobs import BlobErrorKind, FileSystemObjectStore, Locator, ObjectStore

CONTAINER = "productimages"


async def test_put_then_read(object_store: ObjectStore) -> None:
    await object_store.ensure_container(CONTAINER)

    match await object_store.put(CONTAINER, "P1/widget.png", b"\x89PNG", "image/png"):
        case Ok(ref):
            assert (ref.container, ref.path, ref.size, ref.content_type) == (
                CONTAINER,
                "P1/widget.png",
                4,
                "image/png",
            )
        case Error(e):
            raise AssertionError(e)

    assert (await object_store.read(CONTAINER, "P1/widget.png")).value == b"\x89PNG"


async def test_locator_is_stable_and_reversible(object_store: ObjectStore) -> None:
    await object_store.ensure_container(CONTAINER)
    first = (await object_store.put(CONTAINER, "P1/my widget.png", b"a")).value
    second = (await object_store.put(CONTAINER, "P1/my widget.png", b"bb")).value

    assert first.url == second.url
    assert object_store.locate(CONTAINER, first.url) == "P1/my widget.png"
    assert object_store.locate("contracts", first.url) is None
    assert object_store.locate(CONTAINER, "https://elsewhere.example.com/x.png") is None


async def test_overwrite_keeps_last_write(object_store: ObjectStore) -> None:
    await object_store.ensure_container(CONTAINER)
    await object_store.put(CONTAINER, "a.bin", b"one")
    await object_store.put(CONTAINER, "a.bin", b"two")
    assert (await object_store.read(CONTAINER, "a.bin")).value == b"two"


async def test_ensure_container_reports_creation_once(object_store: ObjectStore) -> None:
    assert (await object_store.ensure_container(CONTAINER)).value is True
    assert (await object_store.ensure_container(CONTAINER)).value is False


async def test_missing_container(object_store: ObjectStore) -> None:
    for result in (
        await object_store.put("nowhere", "a.bin", b"x"),
        await object_store.read("nowhere", "a.bin"),
        await object_store.delete("nowhere", "a.bin"),
    ):
        assert isinstance(result, Error)
        assert result.value.kind is BlobErrorKind.MISSING_CONTAINER


async def test_unsafe_paths_are_rejected(object_store: ObjectStore) -> None:
    await object_store.ensure_container(CONTAINER)
    for path in ("", "/abs.png", "../escape.png", "a//b.png", "a\\b.png", "a/./b.png"):
        result = await object_store.put(CONTAINER, path, b"x")
        assert isinstance(result, Error), path
        assert result.value.kind is BlobErrorKind.INVALID_PATH


async def test_unsafe_container_names_are_rejected(object_store: ObjectStore, tmp_path: Path) -> None:
    for container in ("..", ".", "", "a/b", "a\\b"):
        for result in (
            await object_store.ensure_container(container),
            await object_store.put(container, "escape.bin", b"x"),
            await object_store.read(container, "escape.bin"),
            await object_store.delete(container, "escape.bin"),
        ):
            assert isinstance(result, Error), container
            assert result.value.kind is BlobErrorKind.INVALID_PATH

    assert not (tmp_path / "escape.bin").exists()


async def test_read_missing_blob_is_not_found(object_store: ObjectStore) -> None:
    await object_store.ensure_container(CONTAINER)
    result = await object_store.read(CONTAINER, "ghost.png")
    assert isinstance(result, Error)
    assert result.value.kind is BlobErrorKind.NOT_FOUND


async def test_delete_is_idempotent(object_store: ObjectStore) -> None:
    await object_store.ensure_container(CONTAINER)
    await object_store.put(CONTAINER, "P1/widget.png", b"x")

    assert (await object_store.delete(CONTAINER, "P1/widget.png")).value is True
    assert (await object_store.delete(CONTAINER, "P1/widget.png")).value is False


async def test_filesystem_layout_and_public_urls(tmp_path: Path) -> None:
    store = FileSystemObjectStore(tmp_path, base_url="https://cdn.example.com/blobs/")
    await store.ensure_container(CONTAINER)

    ref = (await store.put(CONTAINER, "P1/widget.png", b"img")).value

    assert (tmp_path / CONTAINER / "P1" / "widget.png").read_bytes() == b"img"
    assert ref.url == "https://cdn.example.com/blobs/productimages/P1/widget.png"
    assert store.locate(CONTAINER, ref.url) == "P1/widget.png"


async def test_filesystem_delete_prunes_empty_directories(tmp_path: Path) -> None:
    store = FileSystemObjectStore(tmp_path)
    await store.ensure_container(CONTAINER)
    await store.put(CONTAINER, "P1/widget.png", b"img")

    await store.delete(CONTAINER, "P1/widget.png")

    assert not (tmp_path / CONTAINER / "P1").exists()
    assert (tmp_path / CONTAINER).is_dir()


def test_locator_keeps_scheme_separator() -> None:
    loc = Locator("memory://")
    assert loc.url("productimages", "P1/a b.png") == "memory://productimages/P1/a%20b.png"
    assert loc.locate("productimages", "memory://productimages/P1/a%20b.png") == "P1/a b.png"
    assert loc.locate("productimages", "memory://productimages/../etc/passwd") is None
