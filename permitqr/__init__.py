"""Permit document stamping: upload, QR-stamp and share PDF permits."""

__version__ = "0.1.0"
