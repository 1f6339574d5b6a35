from urllib.parse import quote

import httpx

from permitqr.backends.base import FileStore
from permitqr.backends.http_errors import raise_for_storage
from permitqr.documents.exceptions import StorageError
from permitqr.documents.models import BucketKind, StorageRef


class SupabaseStorage(FileStore):
    """Files in two Supabase Storage buckets, via the Storage REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        buckets: dict[BucketKind, str],
        timeout_seconds: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._buckets = buckets
        self._client = client or httpx.AsyncClient(
            base_url=f"{self._base_url}/storage/v1",
            headers={"Authorization": f"Bearer {service_key}", "apikey": service_key},
            timeout=timeout_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def upload_file(self, bucket: BucketKind, path: str, content: bytes) -> StorageRef:
        what = f"Upload of {self._bucket(bucket)}/{path}"
        response = await self._request(
            "POST",
            self._object_path(bucket, path),
            what,
            content=content,
            headers={
                "Content-Type": "application/pdf",
                "cache-control": "3600",
                "x-upsert": "true",
            },
        )
        raise_for_storage(response, what)
        return StorageRef(bucket=bucket, path=path, url=await self.get_file_url(bucket, path))

    async def download_file(self, bucket: BucketKind, path: str) -> bytes:
        what = f"Download of {self._bucket(bucket)}/{path}"
        response = await self._request("GET", self._object_path(bucket, path), what)
        raise_for_storage(response, what)
        return response.content

    async def get_file_url(self, bucket: BucketKind, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket(bucket)}/{quote(path)}"

    async def delete_file(self, bucket: BucketKind, path: str) -> None:
        what = f"Removal of {self._bucket(bucket)}/{path}"
        response = await self._request("DELETE", self._object_path(bucket, path), what)
        raise_for_storage(response, what)

    def _bucket(self, bucket: BucketKind) -> str:
        return self._buckets[bucket]

    def _object_path(self, bucket: BucketKind, path: str) -> str:
        return f"/object/{self._bucket(bucket)}/{quote(path)}"

    async def _request(self, method: str, url: str, what: str, **kwargs: object) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as exc:
            raise StorageError(f"{what} failed: {exc}") from exc
