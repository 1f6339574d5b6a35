from dataclasses import dataclass, field

from permitqr.documents.models import size_mb_from_bytes


@dataclass(frozen=True)
class UploadRequest:
    """A file handed to the pipeline, plus who uploaded it."""

    filename: str
    content: bytes = field(repr=False)
    owner_user_id: str | None = None
    google_maps_link: str | None = None

    @property
    def size_mb(self) -> float:
        return size_mb_from_bytes(len(self.content))
