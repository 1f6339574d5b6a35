from permitqr.backends.base import Backend, DocumentStore, FileStore, Subscription

__all__ = ["Backend", "DocumentStore", "FileStore", "Subscription"]
