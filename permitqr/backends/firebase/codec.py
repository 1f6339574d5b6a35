"""Translation between Document and Firestore REST ``fields`` maps."""

import re
from datetime import datetime, timezone
from typing import Any

from permitqr.documents.models import Document, DocumentStatus

FIELD_NAMES = {
    "name": "name",
    "size_mb": "sizeMb",
    "status": "status",
    "upload_date": "uploadDate",
    "processed_date": "processedDate",
    "owner_user_id": "userId",
    "original_file_path": "originalFilePath",
    "processed_file_path": "processedFilePath",
    "shareable_url": "shareableUrl",
    "google_maps_link": "googleMapsLink",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}

_FRACTION = re.compile(r"\.(\d+)")


def encode_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, DocumentStatus):
        return {"stringValue": value.value}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return {"timestampValue": aware.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")}
    return {"stringValue": str(value)}


def decode_value(value: dict[str, Any]) -> Any:
    if "stringValue" in value:
        return value["stringValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "timestampValue" in value:
        return parse_timestamp(value["timestampValue"])
    return None


def parse_timestamp(raw: str) -> datetime:
    # Firestore sends up to nanoseconds; datetime keeps exactly microseconds
    normalized = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw)
    return datetime.fromisoformat(normalized.replace("Z", "+00:00"))


def encode_changes(changes: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {FIELD_NAMES[key]: encode_value(value) for key, value in changes.items()}


def encode_document(document: Document, permit_number: int | None) -> dict[str, dict[str, Any]]:
    fields = {
        FIELD_NAMES[key]: encode_value(getattr(document, key))
        for key in FIELD_NAMES
        if getattr(document, key) is not None
    }
    if permit_number is not None:
        fields["permitNumber"] = encode_value(permit_number)
    return fields


def decode_document(resource: dict[str, Any]) -> Document:
    """Build a Document from a Firestore REST document resource."""
    raw = {name: decode_value(v) for name, v in resource.get("fields", {}).items()}
    values = {key: raw.get(firestore_name) for key, firestore_name in FIELD_NAMES.items()}
    values["status"] = DocumentStatus(values["status"] or DocumentStatus.UPLOADED)
    if values["created_at"] is None and "createTime" in resource:
        values["created_at"] = parse_timestamp(resource["createTime"])
    if values["updated_at"] is None and "updateTime" in resource:
        values["updated_at"] = parse_timestamp(resource["updateTime"])
    if values["upload_date"] is None:
        values["upload_date"] = values["created_at"]
    document_id = resource["name"].rsplit("/", 1)[-1]
    return Document(id=document_id, **{k: v for k, v in values.items() if v is not None or k in _NULLABLE})


_NULLABLE = frozenset(
    {
        "processed_date",
        "owner_user_id",
        "original_file_path",
        "processed_file_path",
        "shareable_url",
        "google_maps_link",
        "created_at",
        "updated_at",
    }
)
