class QrError(Exception):
    """Base exception for QR code generation."""


class EncodingError(QrError):
    """Raised when a payload cannot be encoded as a QR symbol."""
