from pathlib import PurePosixPath
from urllib.parse import quote

from permitqr.documents.models import BucketKind

ANONYMOUS_FOLDER = "anonymous"


def shareable_url(origin: str, document_id: str) -> str:
    """Viewer URL for a document. Depends on nothing but its arguments."""
    return f"{origin.rstrip('/')}/document/{quote(document_id, safe='')}"


def storage_path(
    owner_user_id: str | None,
    document_id: str,
    kind: BucketKind,
    filename: str,
) -> str:
    """``<owner>/<id>_<kind>_<filename>``, unique per document and kind."""
    folder = owner_user_id or ANONYMOUS_FOLDER
    safe_name = PurePosixPath(filename.replace("\\", "/")).name or "document.pdf"
    return f"{folder}/{document_id}_{kind.value}_{safe_name}"
