from dataclasses import dataclass
from datetime import datetime, timedelta

from permitqr.backends.base import Backend
from permitqr.documents.exceptions import NotFoundError
from permitqr.documents.models import BucketKind, Document, DocumentStatus, utcnow
from permitqr.logging.logger import Log
from permitqr.processor.links import storage_path


@dataclass(frozen=True)
class StaleDocument:
    document: Document
    stuck_for: timedelta


class DocumentService:
    """Read, delete and audit documents through whichever backend was configured."""

    def __init__(self, backend: Backend) -> None:
        self._documents = backend.documents
        self._files = backend.files

    async def get_document(self, document_id: str) -> Document:
        """Viewer lookup. NotFoundError means missing or not visible, not a load failure."""
        return await self._documents.get_record(document_id)

    async def list_documents(self, owner_user_id: str | None = None) -> list[Document]:
        return await self._documents.list_records(owner_user_id)

    async def delete_document(self, document_id: str) -> None:
        """Remove both stored files, then the record.

        Files are removed first so a failure leaves a record that can be
        deleted again. Paths are derived from the id as well as read from the
        record, which also clears a processed file uploaded just before a
        crash but never recorded.
        """
        document = await self._documents.get_record(document_id)
        for bucket, path in self._file_locations(document):
            try:
                await self._files.delete_file(bucket, path)
            except NotFoundError:
                Log.debug(f"No {bucket.value} file at {path} for {document_id}")
        await self._documents.delete_record(document_id)
        Log.info(f"Deleted document {document_id} and its files")

    async def get_processed_file_url(self, document: Document) -> str | None:
        if not document.processed_file_path:
            return None
        return await self._files.get_file_url(BucketKind.PROCESSED, document.processed_file_path)

    async def download_processed_file(self, document: Document) -> bytes | None:
        if not document.processed_file_path:
            return None
        return await self._files.download_file(BucketKind.PROCESSED, document.processed_file_path)

    async def find_stale_documents(
        self,
        threshold: timedelta,
        now: datetime | None = None,
    ) -> list[StaleDocument]:
        """Records left in ``processing`` for longer than ``threshold``."""
        now = now or utcnow()
        stale: list[StaleDocument] = []
        for document in await self._documents.list_records():
            if document.status is not DocumentStatus.PROCESSING:
                continue
            since = document.updated_at or document.upload_date
            if now - since > threshold:
                stale.append(StaleDocument(document=document, stuck_for=now - since))
        return stale

    @staticmethod
    def _file_locations(document: Document) -> list[tuple[BucketKind, str]]:
        recorded = {
            BucketKind.ORIGINAL: document.original_file_path,
            BucketKind.PROCESSED: document.processed_file_path,
        }
        locations: list[tuple[BucketKind, str]] = []
        for bucket, path in recorded.items():
            expected = storage_path(document.owner_user_id, document.id, bucket, document.name)
            for candidate in dict.fromkeys(p for p in (path, expected) if p):
                locations.append((bucket, candidate))
        return locations
