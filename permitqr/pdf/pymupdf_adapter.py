import pymupdf

from permitqr.logging.logger import Log
from permitqr.pdf.base import BasePdfStamper, StampPosition
from permitqr.pdf.exceptions import EmptyDocumentError, InvalidPdfError, PdfError


class PyMuPdfStamper(BasePdfStamper):
    """Stamps the first page of a PDF using PyMuPDF."""

    def stamp(self, pdf_bytes: bytes, image_bytes: bytes, position: StampPosition) -> bytes:
        try:
            with self._open(pdf_bytes) as doc:
                if doc.page_count == 0:
                    raise EmptyDocumentError("PDF has no pages")
                page = doc[0]
                width, height = page.rect.width, page.rect.height
                x0, y0, x1, y1 = position.box(width, height)
                # PyMuPDF measures y from the top edge
                rect = pymupdf.Rect(x0, height - y1, x1, height - y0)
                page.insert_image(rect, stream=image_bytes, keep_proportion=False)
                return doc.tobytes(deflate=True)
        except PdfError:
            raise
        except Exception as exc:
            raise InvalidPdfError(f"pymupdf stamping failed: {exc}") from exc

    @staticmethod
    def _open(pdf_bytes: bytes) -> pymupdf.Document:
        try:
            doc = pymupdf.open(stream=pdf_bytes, filetype="pdf")  # type: ignore[no-untyped-call]
        except Exception as exc:
            raise InvalidPdfError(f"Cannot parse PDF: {exc}") from exc
        if doc.needs_pass:
            Log.warning("PDF is encrypted, retrying with an empty user password")
            if not doc.authenticate(""):
                doc.close()
                raise InvalidPdfError("PDF is password protected")
        return doc
