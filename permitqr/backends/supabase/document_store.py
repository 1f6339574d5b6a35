import asyncio
import json
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from permitqr.backends.base import ChangeCallback, DocumentStore, Subscription, notify
from permitqr.backends.ids import format_permit_id
from permitqr.documents.exceptions import ConflictError, DbError, NotFoundError
from permitqr.documents.models import (
    UPDATABLE_FIELDS,
    ChangeEvent,
    ChangeKind,
    Document,
    DocumentStatus,
)
from permitqr.logging.logger import Log

COLUMNS = (
    "id",
    "name",
    "size_mb",
    "status",
    "upload_date",
    "processed_date",
    "user_id",
    "original_file_path",
    "processed_file_path",
    "shareable_url",
    "google_maps_link",
    "created_at",
    "updated_at",
)

_OPERATIONS = {
    "INSERT": ChangeKind.INSERT,
    "UPDATE": ChangeKind.UPDATE,
    "DELETE": ChangeKind.DELETE,
}


def row_to_document(row: dict[str, Any]) -> Document:
    size_mb = row["size_mb"]
    return Document(
        id=row["id"],
        name=row["name"],
        size_mb=float(size_mb) if isinstance(size_mb, Decimal) else size_mb,
        status=DocumentStatus(row["status"]),
        upload_date=row["upload_date"],
        processed_date=row.get("processed_date"),
        owner_user_id=row.get("user_id"),
        original_file_path=row.get("original_file_path"),
        processed_file_path=row.get("processed_file_path"),
        shareable_url=row.get("shareable_url"),
        google_maps_link=row.get("google_maps_link"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class PostgresDocumentStore(DocumentStore):
    """Document metadata in the Supabase Postgres ``documents`` table.

    Ids come from a database sequence, so concurrent creators never compute
    the same id. Change events are received with LISTEN on a channel fed by
    a row trigger (see schema.sql).
    """

    def __init__(
        self,
        pool: AsyncConnectionPool,
        *,
        id_prefix: str,
        id_digits: int,
        sequence: str,
        channel: str,
        listener_factory: Callable[[], Awaitable[psycopg.AsyncConnection]],
        reconnect_delay_seconds: float = 5.0,
    ) -> None:
        self._pool = pool
        self._id_prefix = id_prefix
        self._id_digits = id_digits
        self._sequence = sequence
        self._channel = channel
        self._listener_factory = listener_factory
        self._reconnect_delay = reconnect_delay_seconds

    async def open(self) -> None:
        await self._pool.open()

    async def close(self) -> None:
        await self._pool.close()

    async def generate_id(self) -> str:
        try:
            async with self._pool.connection() as conn:
                cur = await conn.execute("SELECT nextval(%s::regclass)", (self._sequence,))
                row = await cur.fetchone()
                await conn.commit()
        except psycopg.Error as exc:
            raise DbError(f"Could not allocate permit number: {exc}") from exc
        if row is None:
            raise DbError("Sequence returned no value")
        return format_permit_id(self._id_prefix, int(row[0]), self._id_digits)

    async def create_record(self, document: Document) -> Document:
        values = self._document_values(document)
        columns = [c for c in COLUMNS if values.get(c) is not None]
        query = sql.SQL("INSERT INTO documents ({}) VALUES ({}) RETURNING *").format(
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        try:
            row = await self._fetch_one(query, tuple(values[c] for c in columns), commit=True)
        except psycopg.errors.UniqueViolation as exc:
            raise ConflictError(f"Document {document.id} already exists") from exc
        if row is None:
            raise DbError(f"Insert of document {document.id} returned no row")
        return row_to_document(row)

    async def get_record(self, document_id: str) -> Document:
        row = await self._fetch_one("SELECT * FROM documents WHERE id = %s", (document_id,))
        if row is None:
            raise NotFoundError(f"Document {document_id} not found")
        return row_to_document(row)

    async def list_records(self, owner_user_id: str | None = None) -> list[Document]:
        if owner_user_id is None:
            query, params = "SELECT * FROM documents ORDER BY created_at DESC", ()
        else:
            query = "SELECT * FROM documents WHERE user_id = %s ORDER BY created_at DESC"
            params = (owner_user_id,)
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise DbError(f"Listing documents failed: {exc}") from exc
        return [row_to_document(row) for row in rows]

    async def update_record(self, document_id: str, changes: dict[str, Any]) -> Document:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DbError(f"Cannot update fields {sorted(unknown)}")
        values = {k: v.value if isinstance(v, DocumentStatus) else v for k, v in changes.items()}
        values.pop("updated_at", None)
        assignments = [
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values
        ]
        assignments.append(sql.SQL("updated_at = NOW()"))
        query = sql.SQL("UPDATE documents SET {} WHERE id = %s RETURNING *").format(
            sql.SQL(", ").join(assignments)
        )
        row = await self._fetch_one(query, (*values.values(), document_id), commit=True)
        if row is None:
            raise NotFoundError(f"Document {document_id} not found")
        return row_to_document(row)

    async def delete_record(self, document_id: str) -> None:
        try:
            async with self._pool.connection() as conn:
                cur = await conn.execute("DELETE FROM documents WHERE id = %s", (document_id,))
                deleted = cur.rowcount
                await conn.commit()
        except psycopg.Error as exc:
            raise DbError(f"Deleting document {document_id} failed: {exc}") from exc
        if deleted == 0:
            raise NotFoundError(f"Document {document_id} not found")

    async def subscribe_to_changes(self, callback: ChangeCallback) -> Subscription:
        task = asyncio.create_task(self._listen(callback))
        return Subscription(task=task)

    async def _listen(self, callback: ChangeCallback) -> None:
        while True:
            try:
                conn = await self._listener_factory()
                async with conn:
                    await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self._channel)))
                    Log.info(f"Listening for document changes on '{self._channel}'")
                    async for message in conn.notifies():
                        await notify(callback, self._parse_notification(message.payload))
            except psycopg.Error as exc:
                Log.warning(f"Change listener disconnected, reconnecting: {exc}")
                await asyncio.sleep(self._reconnect_delay)

    @staticmethod
    def _parse_notification(payload: str) -> ChangeEvent:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            return ChangeEvent(ChangeKind.UPDATE)
        return ChangeEvent(_OPERATIONS.get(data.get("op"), ChangeKind.UPDATE), data.get("id"))

    async def _fetch_one(
        self,
        query: str | sql.Composed,
        params: tuple[Any, ...],
        *,
        commit: bool = False,
    ) -> dict[str, Any] | None:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                if commit:
                    await conn.commit()
        except psycopg.errors.UniqueViolation:
            raise
        except psycopg.Error as exc:
            raise DbError(f"Database query failed: {exc}") from exc
        return row

    @staticmethod
    def _document_values(document: Document) -> dict[str, Any]:
        return {
            "id": document.id,
            "name": document.name,
            "size_mb": document.size_mb,
            "status": document.status.value,
            "upload_date": document.upload_date,
            "processed_date": document.processed_date,
            "user_id": document.owner_user_id,
            "original_file_path": document.original_file_path,
            "processed_file_path": document.processed_file_path,
            "shareable_url": document.shareable_url,
            "google_maps_link": document.google_maps_link,
            "created_at": document.created_at,
            "updated_at": document.updated_at,
        }
