class PdfError(Exception):
    """Base exception for PDF handling."""


class InvalidPdfError(PdfError):
    """Raised when bytes cannot be parsed as a PDF, even tolerating encryption."""


class EmptyDocumentError(PdfError):
    """Raised when a PDF parses but has no pages."""
