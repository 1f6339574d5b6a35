import asyncio
import base64

from permitqr.backends.base import FileStore
from permitqr.backends.local.kv import KeyValueFile
from permitqr.documents.exceptions import NotFoundError, StorageError
from permitqr.documents.models import BucketKind, StorageRef


class LocalFileStore(FileStore):
    """Keeps file bytes in memory.

    With ``persist_binaries`` each file is also written to the key-value layer
    as base64 text so it survives a restart; otherwise only metadata does.
    """

    BLOB_PREFIX = "blob_"

    def __init__(self, kv: KeyValueFile, *, persist_binaries: bool = False) -> None:
        self._kv = kv
        self._persist_binaries = persist_binaries
        self._blobs: dict[tuple[BucketKind, str], bytes] = {}

    async def upload_file(self, bucket: BucketKind, path: str, content: bytes) -> StorageRef:
        self._blobs[(bucket, path)] = content
        if self._persist_binaries:
            encoded = base64.b64encode(content).decode("ascii")
            try:
                await asyncio.to_thread(self._kv.set, self._key(bucket, path), encoded)
            except OSError as exc:
                raise StorageError(f"Could not persist {bucket.value}/{path}: {exc}") from exc
        return StorageRef(bucket=bucket, path=path, url=await self.get_file_url(bucket, path))

    async def download_file(self, bucket: BucketKind, path: str) -> bytes:
        content = self._blobs.get((bucket, path))
        if content is not None:
            return content
        if self._persist_binaries:
            encoded = await asyncio.to_thread(self._kv.get, self._key(bucket, path))
            if encoded is not None:
                content = base64.b64decode(encoded)
                self._blobs[(bucket, path)] = content
                return content
        raise NotFoundError(f"File {bucket.value}/{path} not found")

    async def get_file_url(self, bucket: BucketKind, path: str) -> str:
        return f"local://{bucket.value}/{path}"

    async def delete_file(self, bucket: BucketKind, path: str) -> None:
        in_memory = self._blobs.pop((bucket, path), None) is not None
        persisted = False
        if self._persist_binaries:
            key = self._key(bucket, path)
            persisted = await asyncio.to_thread(self._kv.get, key) is not None
            await asyncio.to_thread(self._kv.delete, key)
        if not in_memory and not persisted:
            raise NotFoundError(f"File {bucket.value}/{path} not found")

    def _key(self, bucket: BucketKind, path: str) -> str:
        return f"{self.BLOB_PREFIX}{bucket.value}_{path}"
