"""
Products and their images.

An image upload and the entity write that references it run as a two-step
saga: if the write fails, the blob uploaded for it is deleted again.

    upload ──(ref.url)──▶ write entity
       ▲                       │ Error
       └──── delete blob ◀─────┘
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kungfu import Error, LazyCoroResult, Ok, Result

from retailfabric import saga as S
from retailfabric.blobs import BlobRef
from retailfabric.entities import IF_MATCH, REPLACE, WriteMode
from retailfabric.workflows import _messages as msg
from retailfabric.workflows._base import Call, Workflow
from retailfabric.workflows._errors import WorkflowError
from retailfabric.workflows._inputs import NewProduct, ProductEdit, parse
from retailfabric.workflows._models import Attachment, Product


def image_path(product_id: str, filename: str) -> str:
    return f"{product_id}/{filename}"


class ProductWorkflow(Workflow):
    """
    Example:
        products = ProductWorkflow(fabric)
        image = Attachment("widget.png", png_bytes, "image/png")
        match await products.create({"product_id": "P1", "name": "Widget", "price": 9.99}, image):
            case Ok(product): product.image_url
            case Error(e): e.kind
    """

    def _check_image(self, call: Call, image: Attachment | None) -> tuple[str | None, Error[WorkflowError] | None]:
        if image is None:
            return None, None
        if image.is_empty:
            return None, self._reject(call, WorkflowError.validation("Image file is empty", "image"))
        if (name := image.safe_name) is None:
            return None, self._reject(call, WorkflowError.validation("Image file name is invalid", "image"))
        return name, None

    async def _prepare(self, call: Call, *, with_image: bool) -> Error[WorkflowError] | None:
        if (missing := self._unavailable(queue=True, blobs=True)) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.products)) is not None:
            return failed
        if with_image:
            return await self._ensure_container(call, self.layout.product_images)
        return None

    # ───────────────────────────────────────────────────────────────────────────
    # Saga pieces
    # ───────────────────────────────────────────────────────────────────────────

    async def _upload(self, call: Call, path: str, image: Attachment) -> Result[BlobRef, WorkflowError]:
        match await self._blobs.put(self.layout.product_images, path, image.content, image.content_type):
            case Ok(ref):
                self._log.info("Uploaded image %s (%d bytes)", ref.path, ref.size, extra=call.extra)
                return Ok(ref)
            case Error(e):
                return self._blob_failure(call, e, field="image")

    async def _discard(self, ref: BlobRef) -> None:
        match await self._blobs.delete(ref.container, ref.path):
            case Error(e):
                raise RuntimeError(f"Could not delete {ref.container}/{ref.path}: {e.message}")

    async def _write_with_image(
        self,
        call: Call,
        product: Product,
        mode: WriteMode,
        path: str,
        image: Attachment,
        *,
        compensate: bool = True,
    ) -> Result[Product, WorkflowError]:
        upload = S.step(
            LazyCoroResult(lambda: self._upload(call, path, image)),
            compensate=self._discard if compensate else None,
        )
        chain = upload.then(lambda ref: S.step(LazyCoroResult(
            lambda: self._upsert(call, self.layout.products, product.with_image(ref.url), mode)
        )))

        match await S.run_chain(chain, correlation_id=call.correlation_id):
            case Ok(done):
                return Ok(done.value)
            case Error(failed):
                if not failed.rollback_complete:
                    self._log.error("Image %s was left behind after a failed write", path, extra=call.extra)
                return Error(failed.error)

    async def _drop_image(self, call: Call, url: str) -> None:
        """Best effort. A missing or foreign image is logged, never fatal."""
        path = self._blobs.locate(self.layout.product_images, url)
        if path is None:
            self._log.warning("Image %s is not held by this store; left in place", url, extra=call.extra)
            return
        match await self._blobs.delete(self.layout.product_images, path):
            case Ok(False):
                self._log.warning("Image %s was already gone", path, extra=call.extra)
            case Error(e):
                self._log.warning("Image %s could not be deleted: %s", path, e.message, extra=call.extra)

    # ───────────────────────────────────────────────────────────────────────────
    # Operations
    # ───────────────────────────────────────────────────────────────────────────

    async def create(
        self,
        data: NewProduct | Mapping[str, Any],
        image: Attachment | None = None,
    ) -> Result[Product, WorkflowError]:
        """Insert or replace the product, uploading its image first when one is given."""
        call = Call("create product")
        match parse(NewProduct, data):
            case Error(e):
                return self._reject(call, e)
            case Ok(new):
                pass
        filename, bad_image = self._check_image(call, image)
        if bad_image is not None:
            return bad_image
        if (failed := await self._prepare(call, with_image=image is not None)) is not None:
            return failed

        product = new.to_domain(partition=self.layout.product_partition)
        path = image_path(product.product_id, filename) if filename is not None else None
        old_path = None
        if path is not None:
            match await self._lookup(
                call, Product, self.layout.products, product.partition_key, product.row_key
            ):
                case Error(_) as failed_read:
                    return failed_read
                case Ok(Product(image_url=str(url))):
                    old_path = self._blobs.locate(self.layout.product_images, url)

        async def write() -> Result[Product, WorkflowError]:
            if image is None or path is None:
                return await self._upsert(call, self.layout.products, product, REPLACE)
            # Replacing a stored product under the same file name overwrites its live image.
            return await self._write_with_image(
                call, product, REPLACE, path, image, compensate=path != old_path
            )

        bodies = [msg.product_created(product, self._now())]
        if path is not None:
            bodies.append(msg.uploading_image(path))
        bodies += [msg.inventory_added(product), msg.validate_price(product)]

        result = await self._write_and_notify(call, write, self.layout.inventory_queue, bodies)
        if isinstance(result, Ok):
            self._log.info("Product %s created", product.product_id, extra=call.extra)
        return result

    async def edit(
        self,
        data: ProductEdit | Mapping[str, Any],
        image: Attachment | None = None,
    ) -> Result[Product, WorkflowError]:
        """
        IF_MATCH update. A new image replaces the old one; the old blob is
        removed only after the write succeeds and only if its path differs.
        """
        call = Call("edit product")
        match parse(ProductEdit, data):
            case Error(e):
                return self._reject(call, e)
            case Ok(edit):
                pass
        filename, bad_image = self._check_image(call, image)
        if bad_image is not None:
            return bad_image
        if (failed := await self._prepare(call, with_image=image is not None)) is not None:
            return failed

        partition = edit.partition_key or self.layout.product_partition
        match await self._get(
            call, Product, self.layout.products, partition, edit.product_id, field="product_id"
        ):
            case Error(_) as failed_read:
                return failed_read
            case Ok(current):
                pass

        updated = edit.apply(current, image_url=current.image_url)
        path = image_path(updated.product_id, filename) if filename is not None else None
        old_path = None
        if current.image_url is not None:
            old_path = self._blobs.locate(self.layout.product_images, current.image_url)

        async def write() -> Result[Product, WorkflowError]:
            if image is None or path is None:
                return await self._upsert(call, self.layout.products, updated, IF_MATCH)
            # Same path: the upload has already overwritten the old image.
            return await self._write_with_image(
                call, updated, IF_MATCH, path, image, compensate=path != old_path
            )

        bodies: list[str] = []
        if path is not None:
            bodies.append(msg.uploading_image(path))
        bodies.append(msg.product_updated(updated, self._now()))

        result = await self._write_and_notify(call, write, self.layout.inventory_queue, bodies)
        match result:
            case Ok(_):
                self._log.info("Product %s updated", edit.product_id, extra=call.extra)
                if path is not None and current.image_url is not None and path != old_path:
                    await self._drop_image(call, current.image_url)
        return result

    async def delete(self, product_id: str) -> Result[bool, WorkflowError]:
        """Delete the row wherever it lives, then its image. Missing products succeed."""
        call = Call("delete product")
        if (failed := await self._prepare(call, with_image=False)) is not None:
            return failed

        match await self._find_row(call, Product, self.layout.products, product_id):
            case Error(_) as failed_read:
                return failed_read
            case Ok(None):
                self._log.warning("Product %s not found for deletion", product_id, extra=call.extra)
                return Ok(False)
            case Ok(found):
                pass

        result = await self._write_and_notify(
            call,
            lambda: self._delete(call, self.layout.products, found.partition_key, found.row_key),
            self.layout.inventory_queue,
            (msg.product_deleted(product_id, self._now()),),
        )
        match result:
            case Ok(_):
                self._log.info("Product %s deleted", product_id, extra=call.extra)
                if found.image_url is not None:
                    await self._drop_image(call, found.image_url)
        return result

    async def get(self, product_id: str, partition: str | None = None) -> Result[Product, WorkflowError]:
        call = Call("get product")
        if (missing := self._unavailable()) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.products)) is not None:
            return failed
        return await self._get(
            call,
            Product,
            self.layout.products,
            partition or self.layout.product_partition,
            product_id,
            field="product_id",
        )

    async def list(self) -> Result[list[Product], WorkflowError]:
        call = Call("list products")
        if (missing := self._unavailable()) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_collections(call, self.layout.products)) is not None:
            return failed
        return await self._list(call, Product, self.layout.products)


__all__ = (
    "ProductWorkflow",
    "image_path",
)
