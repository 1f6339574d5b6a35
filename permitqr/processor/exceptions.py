from enum import Enum


class Stage(str, Enum):
    INIT = "init"
    ORIGINAL_UPLOAD = "original_upload"
    MARK_PROCESSING = "mark_processing"
    STAMP = "stamp"
    PROCESSED_UPLOAD = "processed_upload"
    FINALIZE = "finalize"


class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class PipelineError(ProcessorError):
    """A pipeline stage failed. Re-running the pipeline for the document is safe."""

    retryable = True

    def __init__(self, stage: Stage, cause: BaseException, document_id: str | None = None) -> None:
        self.stage = stage
        self.cause = cause
        self.document_id = document_id
        target = document_id or "<unassigned>"
        super().__init__(f"Stage '{stage.value}' failed for document {target}: {cause}")
