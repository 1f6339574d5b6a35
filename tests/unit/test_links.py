from permitqr.documents.models import BucketKind
from permitqr.processor.links import shareable_url, storage_path


class TestShareableUrl:
    def test_format(self) -> None:
        url = shareable_url("https://permitqrcode.lovable.app", "KASUPDA-PERMIT-001")

        assert url == "https://permitqrcode.lovable.app/document/KASUPDA-PERMIT-001"

    def test_trailing_slash_on_origin(self) -> None:
        url = shareable_url("https://example.org/", "KASUPDA-PERMIT-001")

        assert url == "https://example.org/document/KASUPDA-PERMIT-001"

    def test_id_is_escaped(self) -> None:
        assert shareable_url("https://example.org", "a/b c") == "https://example.org/document/a%2Fb%20c"


class TestStoragePath:
    def test_owner_folder(self) -> None:
        path = storage_path("user-1", "KASUPDA-PERMIT-001", BucketKind.ORIGINAL, "permit.pdf")

        assert path == "user-1/KASUPDA-PERMIT-001_original_permit.pdf"

    def test_anonymous_folder(self) -> None:
        path = storage_path(None, "KASUPDA-PERMIT-001", BucketKind.PROCESSED, "permit.pdf")

        assert path == "anonymous/KASUPDA-PERMIT-001_processed_permit.pdf"

    def test_directory_parts_are_dropped(self) -> None:
        path = storage_path(None, "X-1", BucketKind.ORIGINAL, "C:\\scans\\permit.pdf")

        assert path == "anonymous/X-1_original_permit.pdf"

    def test_kinds_do_not_collide(self) -> None:
        original = storage_path(None, "X-1", BucketKind.ORIGINAL, "permit.pdf")
        processed = storage_path(None, "X-1", BucketKind.PROCESSED, "permit.pdf")

        assert original != processed
