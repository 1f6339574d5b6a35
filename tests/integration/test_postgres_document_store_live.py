import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from permitqr.backends.supabase.connection import build_conninfo, connect_listener, create_pool
from permitqr.backends.supabase.document_store import PostgresDocumentStore
from permitqr.config.settings import Settings
from permitqr.documents.exceptions import ConflictError, DbError, NotFoundError
from permitqr.documents.models import ChangeEvent, ChangeKind, Document, DocumentStatus


def _make_store(settings: Settings) -> PostgresDocumentStore:
    conninfo = build_conninfo(settings)
    return PostgresDocumentStore(
        create_pool(settings),
        id_prefix="ITEST-",
        id_digits=3,
        sequence=settings.permit_sequence,
        channel=settings.changes_channel,
        listener_factory=lambda: connect_listener(conninfo),
    )


def _new_document(cleanup: list[str], **overrides: object) -> Document:
    document_id = f"ITEST-{uuid.uuid4().hex[:12]}"
    cleanup.append(document_id)
    values: dict[str, object] = {
        "id": document_id,
        "name": "permit.pdf",
        "size_mb": 1.25,
        "owner_user_id": f"user-{document_id}",
    }
    values.update(overrides)
    return Document(**values)  # type: ignore[arg-type]


def test_full_lifecycle(postgres_schema: Settings, integration_cleanup: list[str]) -> None:
    store = _make_store(postgres_schema)
    document = _new_document(integration_cleanup, google_maps_link="https://maps.google.com/?q=1,2")

    async def scenario() -> tuple[Document, Document, list[Document]]:
        await store.open()
        try:
            created = await store.create_record(document)
            await store.update_record(
                document.id,
                {"status": DocumentStatus.PROCESSING, "original_file_path": "u/orig.pdf"},
            )
            finished = await store.update_record(
                document.id,
                {
                    "status": DocumentStatus.PROCESSED,
                    "processed_file_path": "u/processed.pdf",
                    "shareable_url": f"https://example.org/document/{document.id}",
                    "processed_date": datetime.now(timezone.utc),
                },
            )
            listed = await store.list_records(document.owner_user_id)
            return created, finished, listed
        finally:
            await store.close()

    created, finished, listed = asyncio.run(scenario())

    assert created.size_mb == 1.25
    assert created.google_maps_link == "https://maps.google.com/?q=1,2"
    assert finished.status is DocumentStatus.PROCESSED
    assert finished.original_file_path == "u/orig.pdf"
    assert finished.updated_at is not None and created.updated_at is not None
    assert finished.updated_at >= created.updated_at
    assert [d.id for d in listed] == [document.id]


def test_sequence_ids_are_distinct(postgres_schema: Settings) -> None:
    store = _make_store(postgres_schema)

    async def scenario() -> list[str]:
        await store.open()
        try:
            return list(await asyncio.gather(*(store.generate_id() for _ in range(5))))
        finally:
            await store.close()

    ids = asyncio.run(scenario())

    assert len(set(ids)) == 5
    assert all(i.startswith("ITEST-") for i in ids)


def test_duplicate_and_missing(postgres_schema: Settings, integration_cleanup: list[str]) -> None:
    store = _make_store(postgres_schema)
    document = _new_document(integration_cleanup)

    async def scenario() -> None:
        await store.open()
        try:
            await store.create_record(document)
            with pytest.raises(ConflictError):
                await store.create_record(document)
            with pytest.raises(NotFoundError):
                await store.get_record("ITEST-missing")
            with pytest.raises(NotFoundError):
                await store.update_record("ITEST-missing", {"status": DocumentStatus.PROCESSING})
            await store.delete_record(document.id)
            with pytest.raises(NotFoundError):
                await store.delete_record(document.id)
        finally:
            await store.close()

    asyncio.run(scenario())


def test_processed_requires_url_and_path(
    postgres_schema: Settings, integration_cleanup: list[str]
) -> None:
    store = _make_store(postgres_schema)
    document = _new_document(integration_cleanup)

    async def scenario() -> None:
        await store.open()
        try:
            await store.create_record(document)
            with pytest.raises(DbError):
                await store.update_record(document.id, {"status": DocumentStatus.PROCESSED})
        finally:
            await store.close()

    asyncio.run(scenario())


def test_change_feed(postgres_schema: Settings, integration_cleanup: list[str]) -> None:
    store = _make_store(postgres_schema)
    document = _new_document(integration_cleanup)
    events: list[ChangeEvent] = []

    async def scenario() -> None:
        await store.open()
        subscription = await store.subscribe_to_changes(events.append)
        try:
            await asyncio.sleep(0.5)
            await store.create_record(document)
            for _ in range(50):
                if any(e.document_id == document.id for e in events):
                    break
                await asyncio.sleep(0.1)
        finally:
            await subscription.close()
            await store.close()

    asyncio.run(scenario())

    assert ChangeEvent(ChangeKind.INSERT, document.id) in events
