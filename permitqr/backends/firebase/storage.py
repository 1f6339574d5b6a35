from urllib.parse import quote

import httpx

from permitqr.backends.base import FileStore
from permitqr.backends.http_errors import raise_for_storage
from permitqr.documents.exceptions import StorageError
from permitqr.documents.models import BucketKind, StorageRef

FIREBASE_STORAGE_URL = "https://firebasestorage.googleapis.com/v0"


class FirebaseStorage(FileStore):
    """Files in one Firebase Storage bucket, with each bucket kind as a top-level folder."""

    def __init__(
        self,
        *,
        bucket: str,
        folders: dict[BucketKind, str],
        auth_token: str = "",
        timeout_seconds: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._objects_path = f"/b/{bucket}/o"
        self._folders = folders
        headers = {"Authorization": f"Bearer {auth_token}"} if auth_token else {}
        self._client = client or httpx.AsyncClient(
            base_url=FIREBASE_STORAGE_URL, headers=headers, timeout=timeout_seconds
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def upload_file(self, bucket: BucketKind, path: str, content: bytes) -> StorageRef:
        name = self._object_name(bucket, path)
        what = f"Upload of {name}"
        response = await self._request(
            "POST",
            self._objects_path,
            what,
            params={"uploadType": "media", "name": name},
            content=content,
            headers={"Content-Type": "application/pdf"},
        )
        raise_for_storage(response, what)
        return StorageRef(bucket=bucket, path=path, url=await self.get_file_url(bucket, path))

    async def download_file(self, bucket: BucketKind, path: str) -> bytes:
        name = self._object_name(bucket, path)
        what = f"Download of {name}"
        response = await self._request("GET", self._object_url(name), what, params={"alt": "media"})
        raise_for_storage(response, what)
        return response.content

    async def get_file_url(self, bucket: BucketKind, path: str) -> str:
        name = self._object_name(bucket, path)
        return f"{FIREBASE_STORAGE_URL}{self._object_url(name)}?alt=media"

    async def delete_file(self, bucket: BucketKind, path: str) -> None:
        name = self._object_name(bucket, path)
        what = f"Removal of {name}"
        response = await self._request("DELETE", self._object_url(name), what)
        raise_for_storage(response, what)

    def _object_name(self, bucket: BucketKind, path: str) -> str:
        return f"{self._folders[bucket]}/{path}"

    def _object_url(self, name: str) -> str:
        return f"{self._objects_path}/{quote(name, safe='')}"

    async def _request(self, method: str, url: str, what: str, **kwargs: object) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as exc:
            raise StorageError(f"{what} failed: {exc}") from exc
