import httpx

from permitqr.documents.exceptions import ConflictError, DbError, NotFoundError, StorageError


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", error))
        return str(body.get("message") or error or body)
    return str(body)


def is_not_found(response: httpx.Response) -> bool:
    """404, or Supabase Storage's 400 carrying ``statusCode: "404"`` in the body."""
    if response.status_code == 404:
        return True
    if response.status_code == 400:
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and str(body.get("statusCode")) == "404"
    return False


def raise_for_db(response: httpx.Response, what: str) -> None:
    if response.is_success:
        return
    if is_not_found(response):
        raise NotFoundError(f"{what} not found")
    if response.status_code == 409:
        raise ConflictError(f"{what} already exists: {_detail(response)}")
    raise DbError(f"{what} failed with HTTP {response.status_code}: {_detail(response)}")


def raise_for_storage(response: httpx.Response, what: str) -> None:
    if response.is_success:
        return
    if is_not_found(response):
        raise NotFoundError(f"{what} not found")
    raise StorageError(f"{what} failed with HTTP {response.status_code}: {_detail(response)}")
