import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from permitqr.backends.base import Backend, DocumentStore, FileStore
from permitqr.backends.local.document_store import LocalDocumentStore
from permitqr.backends.local.file_store import LocalFileStore
from permitqr.backends.local.kv import KeyValueFile
from permitqr.documents.exceptions import NotFoundError, StorageError
from permitqr.documents.models import BucketKind, Document, DocumentStatus
from permitqr.documents.service import DocumentService

DOC_ID = "KASUPDA-PERMIT-001"
ORIGINAL = f"u1/{DOC_ID}_original_permit.pdf"
PROCESSED = f"u1/{DOC_ID}_processed_permit.pdf"


def _make_backend() -> Backend:
    kv = KeyValueFile()
    return Backend(
        name="local",
        documents=LocalDocumentStore(kv, id_prefix="KASUPDA-PERMIT-", id_digits=3),
        files=LocalFileStore(kv),
    )


def _processed_document() -> Document:
    return Document(
        id=DOC_ID,
        name="permit.pdf",
        size_mb=0.1,
        status=DocumentStatus.PROCESSED,
        owner_user_id="u1",
        original_file_path=ORIGINAL,
        processed_file_path=PROCESSED,
        shareable_url=f"https://permitqrcode.lovable.app/document/{DOC_ID}",
    )


async def _seed(backend: Backend, document: Document, *, files: bool = True) -> None:
    await backend.documents.create_record(document)
    if files:
        await backend.files.upload_file(BucketKind.ORIGINAL, ORIGINAL, b"original")
        await backend.files.upload_file(BucketKind.PROCESSED, PROCESSED, b"stamped")


class TestDocumentServiceReads:
    def test_get_document(self) -> None:
        backend = _make_backend()
        asyncio.run(_seed(backend, _processed_document()))

        document = asyncio.run(DocumentService(backend).get_document(DOC_ID))

        assert document.shareable_url.endswith(f"/document/{DOC_ID}")

    def test_get_missing_is_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            asyncio.run(DocumentService(_make_backend()).get_document("KASUPDA-PERMIT-404"))

    def test_processed_file_url_and_download(self) -> None:
        backend = _make_backend()
        asyncio.run(_seed(backend, _processed_document()))
        service = DocumentService(backend)
        document = asyncio.run(service.get_document(DOC_ID))

        assert asyncio.run(service.get_processed_file_url(document)) == f"local://processed/{PROCESSED}"
        assert asyncio.run(service.download_processed_file(document)) == b"stamped"

    def test_unprocessed_document_has_no_processed_file(self) -> None:
        service = DocumentService(_make_backend())
        document = Document(id=DOC_ID, name="permit.pdf", size_mb=0.1)

        assert asyncio.run(service.get_processed_file_url(document)) is None
        assert asyncio.run(service.download_processed_file(document)) is None

    def test_list_documents_passes_owner(self) -> None:
        documents = MagicMock(spec=DocumentStore)
        documents.list_records.return_value = []
        backend = Backend(name="mock", documents=documents, files=MagicMock(spec=FileStore))

        asyncio.run(DocumentService(backend).list_documents("u1"))

        documents.list_records.assert_awaited_once_with("u1")


class TestDocumentServiceDelete:
    def test_removes_files_then_record(self) -> None:
        backend = _make_backend()
        asyncio.run(_seed(backend, _processed_document()))

        asyncio.run(DocumentService(backend).delete_document(DOC_ID))

        with pytest.raises(NotFoundError):
            asyncio.run(backend.documents.get_record(DOC_ID))
        with pytest.raises(NotFoundError):
            asyncio.run(backend.files.download_file(BucketKind.ORIGINAL, ORIGINAL))
        with pytest.raises(NotFoundError):
            asyncio.run(backend.files.download_file(BucketKind.PROCESSED, PROCESSED))

    def test_missing_files_count_as_removed(self) -> None:
        backend = _make_backend()
        asyncio.run(_seed(backend, _processed_document(), files=False))

        asyncio.run(DocumentService(backend).delete_document(DOC_ID))

        with pytest.raises(NotFoundError):
            asyncio.run(backend.documents.get_record(DOC_ID))

    def test_unrecorded_processed_upload_is_removed(self) -> None:
        backend = _make_backend()
        partial = Document(
            id=DOC_ID,
            name="permit.pdf",
            size_mb=0.1,
            status=DocumentStatus.PROCESSING,
            owner_user_id="u1",
            original_file_path=ORIGINAL,
        )
        asyncio.run(_seed(backend, partial))

        asyncio.run(DocumentService(backend).delete_document(DOC_ID))

        with pytest.raises(NotFoundError):
            asyncio.run(backend.files.download_file(BucketKind.PROCESSED, PROCESSED))

    def test_storage_failure_keeps_record(self) -> None:
        backend = _make_backend()
        asyncio.run(_seed(backend, _processed_document()))
        files = MagicMock(spec=FileStore)
        files.delete_file.side_effect = StorageError("bucket offline")
        backend = Backend(name="local", documents=backend.documents, files=files)

        with pytest.raises(StorageError):
            asyncio.run(DocumentService(backend).delete_document(DOC_ID))

        assert asyncio.run(backend.documents.get_record(DOC_ID)).id == DOC_ID

    def test_delete_missing_document(self) -> None:
        with pytest.raises(NotFoundError):
            asyncio.run(DocumentService(_make_backend()).delete_document("KASUPDA-PERMIT-404"))


class TestFindStaleDocuments:
    def test_flags_only_old_processing_records(self) -> None:
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        old = Document(
            id="A", name="a.pdf", size_mb=0.1, status=DocumentStatus.PROCESSING,
            updated_at=now - timedelta(hours=1),
        )
        fresh = Document(
            id="B", name="b.pdf", size_mb=0.1, status=DocumentStatus.PROCESSING,
            updated_at=now - timedelta(minutes=5),
        )
        done = Document(
            id="C", name="c.pdf", size_mb=0.1, status=DocumentStatus.PROCESSED,
            updated_at=now - timedelta(days=1),
        )
        documents = MagicMock(spec=DocumentStore)
        documents.list_records.return_value = [old, fresh, done]
        backend = Backend(name="mock", documents=documents, files=MagicMock(spec=FileStore))

        stale = asyncio.run(
            DocumentService(backend).find_stale_documents(timedelta(minutes=30), now=now)
        )

        assert [item.document.id for item in stale] == ["A"]
        assert stale[0].stuck_for == timedelta(hours=1)
