import asyncio
from collections.abc import Sequence

from permitqr.backends.base import Backend, DocumentStore
from permitqr.config.settings import Settings
from permitqr.documents.exceptions import NotFoundError
from permitqr.documents.models import Document, DocumentStatus
from permitqr.logging.logger import Log
from permitqr.pdf.base import Corner, StampPosition
from permitqr.pdf.factory import PdfStamperFactory
from permitqr.pdf.inspector import PdfInspector
from permitqr.processor.exceptions import PipelineError, Stage
from permitqr.processor.models import UploadRequest
from permitqr.processor.pipeline import PipelineContext, PipelineStep
from permitqr.processor.progress import ProcessingTask, ProgressCallback, ProgressReporter
from permitqr.processor.steps import (
    CreateRecordStep,
    FinalizeStep,
    MarkProcessingStep,
    StampStep,
    UploadOriginalStep,
    UploadProcessedStep,
)
from permitqr.processor.validation import UploadValidator
from permitqr.qr.generator import QrGenerator

STARTED_PERCENT = 10


class Processor:
    """Runs the upload -> stamp -> store pipeline for one document at a time.

    Stages run strictly in order. Any stage failure is re-raised as
    PipelineError carrying the stage name; nothing is retried here. Separate
    documents can be processed concurrently by separate calls.
    """

    def __init__(
        self,
        *,
        steps: Sequence[PipelineStep],
        store: DocumentStore,
        validator: UploadValidator,
        stage_timeout_seconds: float = 0,
    ) -> None:
        self._steps = list(steps)
        self._store = store
        self._validator = validator
        self._stage_timeout = stage_timeout_seconds

    async def process(
        self,
        upload: UploadRequest,
        on_progress: ProgressCallback | None = None,
    ) -> Document:
        """Validate and run every stage for a new upload.

        Raises:
            InvalidUploadError: before any record exists, if the file is unusable.
            PipelineError: if a stage fails.
        """
        await self._validator.validate(upload)
        Log.info(f"Processing {upload.filename} ({upload.size_mb} MB)")
        context = PipelineContext(upload=upload)
        reporter = ProgressReporter(on_progress)
        reporter.report(Stage.INIT, STARTED_PERCENT)
        return await self._run(context, self._steps, reporter)

    async def resume(
        self,
        document_id: str,
        content: bytes,
        on_progress: ProgressCallback | None = None,
    ) -> Document:
        """Re-run the pipeline from the original upload for an existing record.

        Every write is keyed by the record id, so repeating stages that had
        already succeeded overwrites rather than duplicates.
        """
        try:
            document = await self._store.get_record(document_id)
        except NotFoundError as exc:
            raise PipelineError(Stage.INIT, exc, document_id) from exc
        if document.status is DocumentStatus.PROCESSED:
            Log.info(f"Document {document_id} is already processed")
            return document

        upload = UploadRequest(
            filename=document.name,
            content=content,
            owner_user_id=document.owner_user_id,
            google_maps_link=document.google_maps_link,
        )
        await self._validator.validate(upload)
        Log.info(f"Resuming document {document_id} from status {document.status.value}")
        context = PipelineContext(upload=upload, document=document)
        remaining = [step for step in self._steps if step.stage is not Stage.INIT]
        reporter = ProgressReporter(on_progress)
        reporter.report(Stage.INIT, CreateRecordStep.progress)
        return await self._run(context, remaining, reporter)

    def start(self, upload: UploadRequest) -> ProcessingTask:
        """Schedule ``process`` as a task with a progress channel."""
        return ProcessingTask(lambda callback: self.process(upload, callback))

    def start_resume(self, document_id: str, content: bytes) -> ProcessingTask:
        return ProcessingTask(lambda callback: self.resume(document_id, content, callback))

    async def _run(
        self,
        context: PipelineContext,
        steps: Sequence[PipelineStep],
        reporter: ProgressReporter,
    ) -> Document:
        for step in steps:
            Log.debug(f"Stage {step.stage.value} started", document=context.document_id)
            try:
                context = await self._run_step(step, context)
            except asyncio.CancelledError:
                Log.warning(f"Stage {step.stage.value} cancelled", document=context.document_id)
                await self._rollback(step, context)
                raise
            except Exception as exc:
                Log.error(
                    f"Stage {step.stage.value} failed: {exc}", document=context.document_id
                )
                await self._rollback(step, context)
                raise PipelineError(step.stage, exc, context.document_id) from exc
            reporter.report(step.stage, step.progress)
        reporter.report(Stage.FINALIZE, 100)
        return context.require_document()

    async def _run_step(self, step: PipelineStep, context: PipelineContext) -> PipelineContext:
        if self._stage_timeout > 0:
            return await asyncio.wait_for(step.run(context), timeout=self._stage_timeout)
        return await step.run(context)

    @staticmethod
    async def _rollback(step: PipelineStep, context: PipelineContext) -> None:
        try:
            await step.rollback(context)
        except Exception:
            Log.exception(
                f"Rollback of stage {step.stage.value} failed", document=context.document_id
            )


def stamp_position(settings: Settings) -> StampPosition:
    return StampPosition(
        corner=Corner(settings.qr_corner),
        size=settings.qr_size_points,
        margin=settings.qr_margin_points,
    )


def build_processor(settings: Settings, backend: Backend) -> Processor:
    """Build a Processor wired to the given backend."""
    qr_generator = QrGenerator(
        error_correction=settings.qr_error_correction,
        box_size=settings.qr_box_size,
        border=settings.qr_border,
    )
    stamper = PdfStamperFactory.create(settings)
    steps: list[PipelineStep] = [
        CreateRecordStep(backend.documents, settings.id_allocation_attempts),
        UploadOriginalStep(backend.files),
        MarkProcessingStep(backend.documents),
        StampStep(
            backend.documents,
            qr_generator,
            stamper,
            stamp_position(settings),
            settings.app_origin,
        ),
        UploadProcessedStep(backend.files),
        FinalizeStep(backend.documents),
    ]
    return Processor(
        steps=steps,
        store=backend.documents,
        validator=UploadValidator(PdfInspector(), settings.max_upload_mb),
        stage_timeout_seconds=settings.stage_timeout_seconds,
    )
