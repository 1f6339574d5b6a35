from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from permitqr.documents.models import Document
from permitqr.processor.exceptions import Stage
from permitqr.processor.models import UploadRequest


@dataclass(slots=True)
class PipelineContext:
    upload: UploadRequest
    document: Document | None = None
    original_path: str = ""
    shareable_url: str = ""
    qr_png: bytes = b""
    stamped_bytes: bytes = b""
    processed_path: str = ""

    @property
    def document_id(self) -> str | None:
        return self.document.id if self.document is not None else None

    def require_document(self) -> Document:
        if self.document is None:
            raise ValueError("PipelineContext.document must be set by the init stage")
        return self.document


class PipelineStep(ABC):
    """One stage of the pipeline. ``progress`` is the percentage reached once it succeeds."""

    stage: ClassVar[Stage]
    progress: ClassVar[int]

    @abstractmethod
    async def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError

    async def rollback(self, context: PipelineContext) -> None:
        """Undo visible effects after this stage failed. Most stages have none."""
        return None
