import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from permitqr.documents.exceptions import InvalidUploadError
from permitqr.documents.models import Document
from permitqr.logging.logger import Log
from permitqr.processor.exceptions import PipelineError
from permitqr.processor.models import UploadRequest
from permitqr.processor.processor import Processor


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one upload: a document, or the reason it failed."""

    filename: str
    document: Document | None = None
    error: str = ""
    retryable: bool = False
    document_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.document is not None


class UploadRunner:
    """Run several uploads concurrently and report each outcome.

    Failures are reported, never retried; retrying is the user's call.
    """

    def __init__(self, processor: Processor, max_concurrency: int) -> None:
        self._processor = processor
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def run_many(self, uploads: Sequence[UploadRequest]) -> list[UploadOutcome]:
        return list(await asyncio.gather(*(self.run(upload) for upload in uploads)))

    async def run(self, upload: UploadRequest) -> UploadOutcome:
        async with self._semaphore:
            try:
                document = await self._processor.process(upload)
            except InvalidUploadError as exc:
                Log.warning(f"Rejected {upload.filename}: {exc}")
                return UploadOutcome(filename=upload.filename, error=str(exc))
            except PipelineError as exc:
                Log.error(
                    f"Processing {upload.filename} failed, try again: {exc}",
                    stage=exc.stage.value,
                )
                return UploadOutcome(
                    filename=upload.filename,
                    error=str(exc),
                    retryable=exc.retryable,
                    document_id=exc.document_id,
                )
        Log.info(f"{upload.filename} processed as {document.id}", url=document.shareable_url)
        return UploadOutcome(filename=upload.filename, document=document, document_id=document.id)
