import asyncio

from permitqr.backends.base import DocumentStore, FileStore
from permitqr.documents.exceptions import ConflictError
from permitqr.documents.models import BucketKind, Document, DocumentStatus, utcnow
from permitqr.logging.logger import Log
from permitqr.pdf.base import BasePdfStamper, StampPosition
from permitqr.processor.exceptions import Stage
from permitqr.processor.links import shareable_url, storage_path
from permitqr.processor.pipeline import PipelineContext, PipelineStep
from permitqr.qr.generator import QrGenerator


class CreateRecordStep(PipelineStep):
    stage = Stage.INIT
    progress = 20

    def __init__(self, store: DocumentStore, max_attempts: int) -> None:
        self._store = store
        self._max_attempts = max(1, max_attempts)

    async def run(self, context: PipelineContext) -> PipelineContext:
        upload = context.upload
        for attempt in range(1, self._max_attempts + 1):
            document_id = await self._store.generate_id()
            document = Document(
                id=document_id,
                name=upload.filename,
                size_mb=upload.size_mb,
                status=DocumentStatus.UPLOADED,
                owner_user_id=upload.owner_user_id,
                google_maps_link=upload.google_maps_link,
            )
            try:
                context.document = await self._store.create_record(document)
            except ConflictError:
                if attempt == self._max_attempts:
                    raise
                Log.warning(f"Id {document_id} was taken concurrently, allocating another")
                continue
            Log.info(f"Created document {document_id} for {upload.filename}")
            return context
        raise AssertionError("unreachable")


class UploadOriginalStep(PipelineStep):
    stage = Stage.ORIGINAL_UPLOAD
    progress = 40

    def __init__(self, files: FileStore) -> None:
        self._files = files

    async def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        path = storage_path(
            document.owner_user_id, document.id, BucketKind.ORIGINAL, document.name
        )
        await self._files.upload_file(BucketKind.ORIGINAL, path, context.upload.content)
        context.original_path = path
        Log.info(f"Uploaded original of {document.id} to {path}")
        return context


class MarkProcessingStep(PipelineStep):
    stage = Stage.MARK_PROCESSING
    progress = 50

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        context.document = await self._store.update_record(
            document.id,
            {"original_file_path": context.original_path, "status": DocumentStatus.PROCESSING},
        )
        Log.info(f"Document {document.id} marked as processing")
        return context


class StampStep(PipelineStep):
    stage = Stage.STAMP
    progress = 80

    def __init__(
        self,
        store: DocumentStore,
        qr_generator: QrGenerator,
        stamper: BasePdfStamper,
        position: StampPosition,
        origin: str,
    ) -> None:
        self._store = store
        self._qr_generator = qr_generator
        self._stamper = stamper
        self._position = position
        self._origin = origin

    async def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        context.shareable_url = shareable_url(self._origin, document.id)
        context.qr_png = self._qr_generator.generate(context.shareable_url)
        # stamping is CPU-bound; keep other uploads moving
        context.stamped_bytes = await asyncio.to_thread(
            self._stamper.stamp, context.upload.content, context.qr_png, self._position
        )
        Log.info(
            f"Stamped document {document.id}: {len(context.stamped_bytes)} bytes",
            url=context.shareable_url,
        )
        return context

    async def rollback(self, context: PipelineContext) -> None:
        document = context.require_document()
        context.document = await self._store.update_record(
            document.id, {"status": DocumentStatus.UPLOADED}
        )
        Log.warning(f"Document {document.id} reset to uploaded after stamping failed")


class UploadProcessedStep(PipelineStep):
    stage = Stage.PROCESSED_UPLOAD
    progress = 90

    def __init__(self, files: FileStore) -> None:
        self._files = files

    async def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        path = storage_path(
            document.owner_user_id, document.id, BucketKind.PROCESSED, document.name
        )
        await self._files.upload_file(BucketKind.PROCESSED, path, context.stamped_bytes)
        context.processed_path = path
        Log.info(f"Uploaded processed copy of {document.id} to {path}")
        return context


class FinalizeStep(PipelineStep):
    stage = Stage.FINALIZE
    progress = 100

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        # path and URL go in one write so neither is visible without the other
        context.document = await self._store.update_record(
            document.id,
            {
                "processed_file_path": context.processed_path,
                "shareable_url": context.shareable_url,
                "status": DocumentStatus.PROCESSED,
                "processed_date": utcnow(),
            },
        )
        Log.info(f"Document {document.id} processed", url=context.shareable_url)
        return context
