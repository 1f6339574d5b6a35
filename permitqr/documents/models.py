from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"


class BucketKind(str, Enum):
    ORIGINAL = "original"
    PROCESSED = "processed"


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def size_mb_from_bytes(size_bytes: int) -> float:
    """Megabytes rounded to two decimals, as shown to users."""
    return round(size_bytes / 1024 / 1024, 2)


@dataclass(frozen=True)
class Document:
    """A permit document record in its backend-agnostic shape."""

    id: str
    name: str
    size_mb: float
    status: DocumentStatus = DocumentStatus.UPLOADED
    upload_date: datetime = field(default_factory=utcnow)
    processed_date: datetime | None = None
    owner_user_id: str | None = None
    original_file_path: str | None = None
    processed_file_path: str | None = None
    shareable_url: str | None = None
    google_maps_link: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def merged(self, changes: dict[str, Any]) -> "Document":
        """Return a copy with ``changes`` applied. The id cannot change."""
        if "id" in changes and changes["id"] != self.id:
            raise ValueError("Document id is immutable")
        unknown = set(changes) - UPDATABLE_FIELDS - {"id"}
        if unknown:
            raise ValueError(f"Unknown document fields: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in changes.items() if k != "id"})

    def to_dict(self) -> dict[str, Any]:
        """Unified snake_case row with ISO-8601 timestamps."""
        row: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            row[f.name] = value
        return row

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Document":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in row.items() if k in known}
        for name in ("upload_date", "processed_date", "created_at", "updated_at"):
            if isinstance(values.get(name), str):
                values[name] = datetime.fromisoformat(values[name])
        values["status"] = DocumentStatus(values.get("status", DocumentStatus.UPLOADED))
        return cls(**values)


UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "processed_date",
        "original_file_path",
        "processed_file_path",
        "shareable_url",
        "google_maps_link",
        "updated_at",
    }
)


@dataclass(frozen=True)
class StorageRef:
    """Where an uploaded file landed in a file store."""

    bucket: BucketKind
    path: str
    url: str = ""


@dataclass(frozen=True)
class ChangeEvent:
    """Hint that the documents collection changed. Re-list rather than replay."""

    kind: ChangeKind
    document_id: str | None = None
