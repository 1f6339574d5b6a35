import httpx
import pytest

from permitqr.backends.http_errors import is_not_found, raise_for_db, raise_for_storage
from permitqr.documents.exceptions import ConflictError, DbError, NotFoundError, StorageError


class TestIsNotFound:
    def test_404(self) -> None:
        assert is_not_found(httpx.Response(404))

    def test_400_with_404_body(self) -> None:
        assert is_not_found(httpx.Response(400, json={"statusCode": "404"}))

    def test_plain_400(self) -> None:
        assert not is_not_found(httpx.Response(400, json={"statusCode": "400"}))

    def test_400_without_json(self) -> None:
        assert not is_not_found(httpx.Response(400, text="bad request"))


class TestRaiseForDb:
    def test_success_is_silent(self) -> None:
        raise_for_db(httpx.Response(200), "Document X")

    def test_conflict(self) -> None:
        with pytest.raises(ConflictError, match="Document X already exists"):
            raise_for_db(httpx.Response(409, json={"error": {"message": "exists"}}), "Document X")

    def test_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            raise_for_db(httpx.Response(404), "Document X")

    def test_other_errors(self) -> None:
        with pytest.raises(DbError, match="HTTP 503"):
            raise_for_db(httpx.Response(503, text="unavailable"), "Document X")


class TestRaiseForStorage:
    def test_conflict_is_storage_error(self) -> None:
        with pytest.raises(StorageError, match="HTTP 409"):
            raise_for_storage(httpx.Response(409, json={"message": "exists"}), "Upload")

    def test_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            raise_for_storage(httpx.Response(404), "Download")
