import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from permitqr.documents.models import BucketKind, ChangeEvent, Document, StorageRef
from permitqr.logging.logger import Log

ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


async def notify(callback: ChangeCallback, event: ChangeEvent) -> None:
    """Invoke a sync or async change callback.

    A failing callback is logged and the event dropped; the feed keeps running.
    """
    try:
        result = callback(event)
        if asyncio.iscoroutine(result):
            await result
    except Exception:
        Log.exception(f"Change callback failed for {event.kind.value} {event.document_id}")


class Subscription:
    """Handle for a change feed. ``close()`` stops delivery."""

    def __init__(self, task: asyncio.Task[None] | None = None, on_close: Callable[[], None] | None = None) -> None:
        self._task = task
        self._on_close = on_close
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class DocumentStore(ABC):
    """Contract for document metadata stores."""

    @abstractmethod
    async def generate_id(self) -> str:
        """Return a fresh identifier not assigned to any existing record."""

    @abstractmethod
    async def create_record(self, document: Document) -> Document:
        """Insert ``document`` as-is.

        Raises:
            ConflictError: if the id is already taken.
            DbError: if the store rejects the write.
        """

    @abstractmethod
    async def get_record(self, document_id: str) -> Document:
        """Raises NotFoundError for an unknown id."""

    @abstractmethod
    async def list_records(self, owner_user_id: str | None = None) -> list[Document]:
        """Return records newest-first, optionally only those of one owner."""

    @abstractmethod
    async def update_record(self, document_id: str, changes: dict[str, Any]) -> Document:
        """Merge ``changes`` into the record and return the stored result.

        Raises:
            NotFoundError: for an unknown id.
            DbError: if the store rejects the write.
        """

    @abstractmethod
    async def delete_record(self, document_id: str) -> None:
        """Remove metadata only. Stored files are the caller's concern."""

    @abstractmethod
    async def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        """Deliver a ChangeEvent for creates, updates and deletes.

        Delivery is at-least-once with no ordering guarantee and events may be
        lost while disconnected; consumers should re-list on each event.
        """

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None


class FileStore(ABC):
    """Contract for binary file stores with an original and a processed bucket."""

    @abstractmethod
    async def upload_file(self, bucket: BucketKind, path: str, content: bytes) -> StorageRef:
        """Store ``content``, overwriting any previous object at ``path``."""

    @abstractmethod
    async def download_file(self, bucket: BucketKind, path: str) -> bytes:
        """Raises NotFoundError when nothing is stored at ``path``."""

    @abstractmethod
    async def get_file_url(self, bucket: BucketKind, path: str) -> str:
        """Return the provider URL for ``path``. Does not check existence."""

    @abstractmethod
    async def delete_file(self, bucket: BucketKind, path: str) -> None:
        """Raises NotFoundError when nothing is stored at ``path``."""

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None


@dataclass
class Backend:
    """A document store and a file store chosen together at startup."""

    name: str
    documents: DocumentStore
    files: FileStore

    async def open(self) -> None:
        await self.documents.open()
        await self.files.open()

    async def close(self) -> None:
        await self.documents.close()
        await self.files.close()
