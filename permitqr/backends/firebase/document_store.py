import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Any

import httpx

from permitqr.backends.base import ChangeCallback, DocumentStore, Subscription, notify
from permitqr.backends.firebase import codec
from permitqr.backends.http_errors import raise_for_db
from permitqr.backends.ids import format_permit_id, permit_number
from permitqr.documents.exceptions import BackendError, DbError
from permitqr.documents.models import UPDATABLE_FIELDS, ChangeEvent, ChangeKind, Document, utcnow
from permitqr.logging.logger import Log

FIRESTORE_URL = "https://firestore.googleapis.com/v1"


class FirestoreDocumentStore(DocumentStore):
    """Document metadata in a Firestore collection, via the Firestore REST API.

    Ids are the highest stored ``permitNumber`` plus one. Two creators can
    compute the same id; the create call is a uniqueness-enforcing insert, so
    the loser gets ConflictError and asks for a new id.
    """

    def __init__(
        self,
        *,
        project_id: str,
        collection: str,
        id_prefix: str,
        id_digits: int,
        api_key: str = "",
        auth_token: str = "",
        poll_interval_seconds: float = 5,
        timeout_seconds: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._collection = collection
        self._id_prefix = id_prefix
        self._id_digits = id_digits
        self._poll_interval = poll_interval_seconds
        self._documents_path = f"/projects/{project_id}/databases/(default)/documents"
        headers = {"Authorization": f"Bearer {auth_token}"} if auth_token else {}
        params = {"key": api_key} if api_key else {}
        self._client = client or httpx.AsyncClient(
            base_url=FIRESTORE_URL, headers=headers, params=params, timeout=timeout_seconds
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def generate_id(self) -> str:
        query = self._structured_query(order_by="permitNumber", limit=1)
        results = await self._run_query(query, "Permit number lookup")
        highest = 0
        for resource in results:
            stored = resource.get("fields", {}).get("permitNumber")
            if stored is not None:
                highest = max(highest, int(codec.decode_value(stored)))
            else:
                parsed = permit_number(resource["name"].rsplit("/", 1)[-1], self._id_prefix)
                highest = max(highest, parsed or 0)
        return format_permit_id(self._id_prefix, highest + 1, self._id_digits)

    async def create_record(self, document: Document) -> Document:
        now = utcnow()
        document = replace(document, created_at=document.created_at or now, updated_at=now)
        fields = codec.encode_document(document, permit_number(document.id, self._id_prefix))
        what = f"Document {document.id}"
        response = await self._request(
            "POST",
            self._collection_url,
            what,
            params={"documentId": document.id},
            json={"fields": fields},
        )
        raise_for_db(response, what)
        return codec.decode_document(response.json())

    async def get_record(self, document_id: str) -> Document:
        what = f"Document {document_id}"
        response = await self._request("GET", self._document_url(document_id), what)
        raise_for_db(response, what)
        return codec.decode_document(response.json())

    async def list_records(self, owner_user_id: str | None = None) -> list[Document]:
        query = self._structured_query(order_by="createdAt", owner_user_id=owner_user_id)
        results = await self._run_query(query, "Document listing")
        return [codec.decode_document(resource) for resource in results]

    async def update_record(self, document_id: str, changes: dict[str, Any]) -> Document:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DbError(f"Cannot update fields {sorted(unknown)}")
        changes = {**changes, "updated_at": utcnow()}
        fields = codec.encode_changes(changes)
        params = [("updateMask.fieldPaths", name) for name in fields]
        params.append(("currentDocument.exists", "true"))
        what = f"Document {document_id}"
        response = await self._request(
            "PATCH", self._document_url(document_id), what, params=params, json={"fields": fields}
        )
        raise_for_db(response, what)
        return codec.decode_document(response.json())

    async def delete_record(self, document_id: str) -> None:
        what = f"Document {document_id}"
        response = await self._request(
            "DELETE",
            self._document_url(document_id),
            what,
            params={"currentDocument.exists": "true"},
        )
        raise_for_db(response, what)

    async def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        """Poll the collection and report differences between snapshots."""
        task = asyncio.create_task(self._poll(callback))
        return Subscription(task=task)

    async def _poll(self, callback: ChangeCallback) -> None:
        previous: dict[str, datetime | None] | None = None
        while True:
            try:
                current = {d.id: d.updated_at for d in await self.list_records()}
            except BackendError as exc:
                Log.warning(f"Change poll failed, will retry: {exc}")
                await asyncio.sleep(self._poll_interval)
                continue
            if previous is not None:
                for event in diff_snapshots(previous, current):
                    await notify(callback, event)
            previous = current
            await asyncio.sleep(self._poll_interval)

    @property
    def _collection_url(self) -> str:
        return f"{self._documents_path}/{self._collection}"

    def _document_url(self, document_id: str) -> str:
        return f"{self._collection_url}/{document_id}"

    def _structured_query(
        self,
        *,
        order_by: str,
        owner_user_id: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {
            "from": [{"collectionId": self._collection}],
            "orderBy": [{"field": {"fieldPath": order_by}, "direction": "DESCENDING"}],
        }
        if owner_user_id is not None:
            query["where"] = {
                "fieldFilter": {
                    "field": {"fieldPath": "userId"},
                    "op": "EQUAL",
                    "value": codec.encode_value(owner_user_id),
                }
            }
        if limit is not None:
            query["limit"] = limit
        return query

    async def _run_query(self, structured_query: dict[str, Any], what: str) -> list[dict[str, Any]]:
        response = await self._request(
            "POST",
            f"{self._documents_path}:runQuery",
            what,
            json={"structuredQuery": structured_query},
        )
        raise_for_db(response, what)
        return [item["document"] for item in response.json() if "document" in item]

    async def _request(self, method: str, url: str, what: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise DbError(f"{what}: request failed: {exc}") from exc


def diff_snapshots(
    previous: dict[str, datetime | None],
    current: dict[str, datetime | None],
) -> list[ChangeEvent]:
    events = [ChangeEvent(ChangeKind.INSERT, i) for i in current if i not in previous]
    events += [
        ChangeEvent(ChangeKind.UPDATE, i)
        for i in current
        if i in previous and current[i] != previous[i]
    ]
    events += [ChangeEvent(ChangeKind.DELETE, i) for i in previous if i not in current]
    return events
