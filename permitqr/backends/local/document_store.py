import asyncio
from dataclasses import replace
from typing import Any

from permitqr.backends.base import ChangeCallback, DocumentStore, Subscription, notify
from permitqr.backends.ids import format_permit_id, permit_number
from permitqr.backends.local.kv import KeyValueFile
from permitqr.documents.exceptions import ConflictError, DbError, NotFoundError
from permitqr.documents.models import ChangeEvent, ChangeKind, Document, utcnow
from permitqr.logging.logger import Log


class LocalDocumentStore(DocumentStore):
    """Single-process document cache used when no backend is configured.

    Records live in memory and are mirrored to a KeyValueFile, one entry per
    document id. Nothing is shared between processes or devices.
    """

    DOC_PREFIX = "doc_"
    COUNTER_KEY = "permit_counter"

    def __init__(self, kv: KeyValueFile, *, id_prefix: str, id_digits: int) -> None:
        self._kv = kv
        self._id_prefix = id_prefix
        self._id_digits = id_digits
        self._documents: dict[str, Document] = {}
        self._listeners: list[ChangeCallback] = []
        self._id_lock = asyncio.Lock()
        self._create_lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        for key in self._kv.keys(self.DOC_PREFIX):
            row = self._kv.get(key)
            if row is None:
                continue
            try:
                document = Document.from_dict(row)
            except (TypeError, ValueError) as exc:
                Log.error(f"Skipping malformed cached document {key}: {exc}")
                continue
            self._documents[document.id] = document
        Log.info(f"Loaded {len(self._documents)} cached documents")

    async def generate_id(self) -> str:
        async with self._id_lock:
            numbers = [permit_number(doc_id, self._id_prefix) for doc_id in self._documents]
            highest = max([n for n in numbers if n is not None] + [self._kv.get(self.COUNTER_KEY) or 0])
            next_number = highest + 1
            await asyncio.to_thread(self._kv.set, self.COUNTER_KEY, next_number)
        return format_permit_id(self._id_prefix, next_number, self._id_digits)

    async def create_record(self, document: Document) -> Document:
        async with self._create_lock:
            if document.id in self._documents:
                raise ConflictError(f"Document {document.id} already exists")
            now = utcnow()
            stored = replace(document, created_at=document.created_at or now, updated_at=now)
            await self._persist(stored)
        await self._emit(ChangeEvent(ChangeKind.INSERT, stored.id))
        return stored

    async def get_record(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def list_records(self, owner_user_id: str | None = None) -> list[Document]:
        documents = [
            d
            for d in self._documents.values()
            if owner_user_id is None or d.owner_user_id == owner_user_id
        ]
        return sorted(documents, key=lambda d: d.created_at or d.upload_date, reverse=True)

    async def update_record(self, document_id: str, changes: dict[str, Any]) -> Document:
        current = await self.get_record(document_id)
        try:
            updated = current.merged({**changes, "updated_at": utcnow()})
        except ValueError as exc:
            raise DbError(str(exc)) from exc
        await self._persist(updated)
        await self._emit(ChangeEvent(ChangeKind.UPDATE, document_id))
        return updated

    async def delete_record(self, document_id: str) -> None:
        if document_id not in self._documents:
            raise NotFoundError(f"Document {document_id} not found")
        try:
            await asyncio.to_thread(self._kv.delete, f"{self.DOC_PREFIX}{document_id}")
        except OSError as exc:
            raise DbError(f"Could not delete document {document_id}: {exc}") from exc
        self._documents.pop(document_id, None)
        await self._emit(ChangeEvent(ChangeKind.DELETE, document_id))

    async def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        self._listeners.append(callback)
        return Subscription(on_close=lambda: self._listeners.remove(callback))

    async def _persist(self, document: Document) -> None:
        """Write to the durable layer, then publish to the in-memory view."""
        try:
            await asyncio.to_thread(
                self._kv.set, f"{self.DOC_PREFIX}{document.id}", document.to_dict()
            )
        except OSError as exc:
            raise DbError(f"Could not persist document {document.id}: {exc}") from exc
        self._documents[document.id] = document

    async def _emit(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            await notify(listener, event)
