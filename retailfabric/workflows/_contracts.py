"""Contract documents. Stored blobs only; no entity row, no notice."""

from __future__ import annotations

from pathlib import PurePosixPath

from kungfu import Error, Ok, Result

from retailfabric.blobs import BlobRef
from retailfabric.workflows._base import Call, Workflow
from retailfabric.workflows._errors import WorkflowError
from retailfabric.workflows._models import Attachment

STAMP_FORMAT = "%Y%m%d%H%M%S"


class ContractWorkflow(Workflow):
    def contract_path(self, filename: str) -> str:
        """dummycontracts/<stem>_<yyyyMMddHHmmss><ext>, stamped with the current UTC time."""
        name = PurePosixPath(filename)
        stamped = f"{name.stem}_{self._now().strftime(STAMP_FORMAT)}{name.suffix}"
        return f"{self.layout.contracts_directory}/{stamped}"

    async def upload(self, attachment: Attachment | None) -> Result[BlobRef, WorkflowError]:
        call = Call("upload contract")
        if attachment is None or attachment.is_empty:
            return self._reject(call, WorkflowError.validation("No contract file was provided", "file"))
        if (filename := attachment.safe_name) is None:
            return self._reject(call, WorkflowError.validation("Contract file name is invalid", "file"))

        if (missing := self._unavailable(entities=False, blobs=True)) is not None:
            return self._reject(call, missing)
        if (failed := await self._ensure_container(call, self.layout.contracts)) is not None:
            return failed

        path = self.contract_path(filename)
        match await self._blobs.put(self.layout.contracts, path, attachment.content, attachment.content_type):
            case Ok(ref):
                self._log.info("Contract stored as %s (%d bytes)", ref.path, ref.size, extra=call.extra)
                return Ok(ref)
            case Error(e):
                return self._blob_failure(call, e, field="file")


__all__ = (
    "STAMP_FORMAT",
    "ContractWorkflow",
)
