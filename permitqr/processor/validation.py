import asyncio
from pathlib import PurePosixPath

from permitqr.documents.exceptions import InvalidUploadError
from permitqr.pdf.exceptions import PdfError
from permitqr.pdf.inspector import PdfInspector
from permitqr.processor.models import UploadRequest

PDF_MAGIC = b"%PDF-"
PDF_EXTENSION = ".pdf"


class UploadValidator:
    """Rejects uploads that are not usable PDFs before anything is persisted."""

    def __init__(self, inspector: PdfInspector, max_upload_mb: float) -> None:
        self._inspector = inspector
        self._max_upload_mb = max_upload_mb

    async def validate(self, upload: UploadRequest) -> None:
        """Raises InvalidUploadError describing the first problem found.

        The PDF is parsed in a worker thread so large uploads do not stall
        other pipelines sharing the event loop.
        """
        if not upload.filename.strip():
            raise InvalidUploadError("A filename is required")
        suffix = PurePosixPath(upload.filename.replace("\\", "/")).suffix.lower()
        if suffix != PDF_EXTENSION:
            raise InvalidUploadError(f"{upload.filename} is not a PDF file (expected {PDF_EXTENSION})")
        if not upload.content:
            raise InvalidUploadError(f"{upload.filename} is empty")
        if upload.size_mb > self._max_upload_mb:
            raise InvalidUploadError(
                f"{upload.filename} is {upload.size_mb} MB, limit is {self._max_upload_mb} MB"
            )
        # PDF readers tolerate junk before the header
        if PDF_MAGIC not in upload.content[:1024]:
            raise InvalidUploadError(f"{upload.filename} is not a PDF file")
        try:
            info = await asyncio.to_thread(self._inspector.inspect, upload.content)
        except PdfError as exc:
            raise InvalidUploadError(f"{upload.filename} could not be read as a PDF: {exc}") from exc
        if info.page_count == 0:
            raise InvalidUploadError(f"{upload.filename} has no pages")
