import io

from pypdf import PageObject, PasswordType, PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from permitqr.logging.logger import Log
from permitqr.pdf.base import BasePdfStamper, StampPosition
from permitqr.pdf.exceptions import EmptyDocumentError, InvalidPdfError, PdfError


class PyPdfStamper(BasePdfStamper):
    """Stamps the first page by merging a ReportLab overlay with pypdf."""

    def stamp(self, pdf_bytes: bytes, image_bytes: bytes, position: StampPosition) -> bytes:
        try:
            reader = self._open(pdf_bytes)
            if len(reader.pages) == 0:
                raise EmptyDocumentError("PDF has no pages")
            writer = PdfWriter(clone_from=reader)
            page = writer.pages[0]
            box = page.mediabox
            x0, y0, _x1, _y1 = position.box(float(box.width), float(box.height))
            overlay = self._overlay(
                page_size=(float(box.right), float(box.top)),
                origin=(x0 + float(box.left), y0 + float(box.bottom)),
                size=position.size,
                image_bytes=image_bytes,
            )
            page.merge_page(overlay)
            out = io.BytesIO()
            writer.write(out)
            return out.getvalue()
        except PdfError:
            raise
        except Exception as exc:
            raise InvalidPdfError(f"pypdf stamping failed: {exc}") from exc

    @staticmethod
    def _open(pdf_bytes: bytes) -> PdfReader:
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
        except Exception as exc:
            raise InvalidPdfError(f"Cannot parse PDF: {exc}") from exc
        if reader.is_encrypted:
            Log.warning("PDF is encrypted, retrying with an empty user password")
            if reader.decrypt("") == PasswordType.NOT_DECRYPTED:
                raise InvalidPdfError("PDF is password protected")
        return reader

    @staticmethod
    def _overlay(
        *,
        page_size: tuple[float, float],
        origin: tuple[float, float],
        size: float,
        image_bytes: bytes,
    ) -> PageObject:
        buf = io.BytesIO()
        sheet = canvas.Canvas(buf, pagesize=page_size)
        sheet.drawImage(
            ImageReader(io.BytesIO(image_bytes)),
            origin[0],
            origin[1],
            width=size,
            height=size,
            preserveAspectRatio=False,
        )
        sheet.showPage()
        sheet.save()
        return PdfReader(io.BytesIO(buf.getvalue())).pages[0]
