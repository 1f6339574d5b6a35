from collections.abc import Callable
from pathlib import Path
from typing import ClassVar

from permitqr.backends.base import Backend
from permitqr.backends.firebase.document_store import FirestoreDocumentStore
from permitqr.backends.firebase.storage import FirebaseStorage
from permitqr.backends.local.document_store import LocalDocumentStore
from permitqr.backends.local.file_store import LocalFileStore
from permitqr.backends.local.kv import KeyValueFile
from permitqr.backends.supabase.connection import build_conninfo, connect_listener, create_pool
from permitqr.backends.supabase.document_store import PostgresDocumentStore
from permitqr.backends.supabase.storage import SupabaseStorage
from permitqr.config.settings import Settings
from permitqr.documents.models import BucketKind


def _bucket_names(settings: Settings) -> dict[BucketKind, str]:
    return {
        BucketKind.ORIGINAL: settings.original_bucket,
        BucketKind.PROCESSED: settings.processed_bucket,
    }


def _require(settings: Settings, backend: str, *names: str) -> None:
    missing = [name for name in names if not getattr(settings, name)]
    if missing:
        raise ValueError(f"Backend '{backend}' requires settings: {missing}")


def create_supabase_backend(settings: Settings) -> Backend:
    _require(settings, "supabase", "supabase_url", "supabase_service_key")
    conninfo = build_conninfo(settings)
    documents = PostgresDocumentStore(
        create_pool(settings),
        id_prefix=settings.permit_id_prefix,
        id_digits=settings.permit_id_digits,
        sequence=settings.permit_sequence,
        channel=settings.changes_channel,
        listener_factory=lambda: connect_listener(conninfo),
    )
    files = SupabaseStorage(
        base_url=settings.supabase_url,
        service_key=settings.supabase_service_key,
        buckets=_bucket_names(settings),
        timeout_seconds=settings.http_timeout_seconds,
    )
    return Backend(name="supabase", documents=documents, files=files)


def create_firebase_backend(settings: Settings) -> Backend:
    _require(settings, "firebase", "firebase_project_id", "firebase_storage_bucket")
    documents = FirestoreDocumentStore(
        project_id=settings.firebase_project_id,
        collection=settings.firebase_collection,
        id_prefix=settings.permit_id_prefix,
        id_digits=settings.permit_id_digits,
        api_key=settings.firebase_api_key,
        auth_token=settings.firebase_auth_token,
        poll_interval_seconds=settings.firebase_poll_interval_seconds,
        timeout_seconds=settings.http_timeout_seconds,
    )
    files = FirebaseStorage(
        bucket=settings.firebase_storage_bucket,
        folders=_bucket_names(settings),
        auth_token=settings.firebase_auth_token,
        timeout_seconds=settings.http_timeout_seconds,
    )
    return Backend(name="firebase", documents=documents, files=files)


def create_local_backend(settings: Settings) -> Backend:
    kv = KeyValueFile(Path(settings.local_data_dir)) if settings.local_data_dir else KeyValueFile()
    documents = LocalDocumentStore(
        kv, id_prefix=settings.permit_id_prefix, id_digits=settings.permit_id_digits
    )
    files = LocalFileStore(kv, persist_binaries=settings.local_persist_binaries)
    return Backend(name="local", documents=documents, files=files)


class BackendFactory:
    """Creates the backend named by settings. Called once at startup."""

    BUILDERS: ClassVar[dict[str, Callable[[Settings], Backend]]] = {
        "supabase": create_supabase_backend,
        "firebase": create_firebase_backend,
        "local": create_local_backend,
    }

    @classmethod
    def create(cls, settings: Settings, name: str | None = None) -> Backend:
        backend = (name or settings.backend).lower()
        builder = cls.BUILDERS.get(backend)
        if builder is None:
            raise ValueError(
                f"Unknown backend '{backend}'. Choose from: {list(cls.BUILDERS)}"
            )
        return builder(settings)
