class BackendError(Exception):
    """Base exception for all document and file store failures."""


class DbError(BackendError):
    """Raised when the metadata store rejects a write or a query."""


class ConflictError(DbError):
    """Raised when a record is created with an id that is already taken."""


class NotFoundError(BackendError):
    """Raised when a record or stored file does not exist."""


class StorageError(BackendError):
    """Raised when a file upload, download or removal fails."""


class InvalidUploadError(Exception):
    """Raised when an upload is rejected before any record is created."""
