import io
from dataclasses import dataclass, field

import pdfplumber

from permitqr.pdf.exceptions import InvalidPdfError


@dataclass(frozen=True)
class ImageBox:
    """Placement of an embedded image, in points from the page's top-left corner."""

    x0: float
    top: float
    x1: float
    bottom: float


@dataclass(frozen=True)
class PdfInfo:
    page_count: int
    first_page_width: float = 0.0
    first_page_height: float = 0.0
    first_page_images: list[ImageBox] = field(default_factory=list)


class PdfInspector:
    """Reads page geometry and image placement from a PDF using pdfplumber."""

    def inspect(self, pdf_bytes: bytes) -> PdfInfo:
        """Parse the PDF and describe its first page.

        Raises:
            InvalidPdfError: if pdfplumber cannot open the document.
        """
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                if not pdf.pages:
                    return PdfInfo(page_count=0)
                first = pdf.pages[0]
                images = [
                    ImageBox(
                        x0=float(image["x0"]),
                        top=float(image["top"]),
                        x1=float(image["x1"]),
                        bottom=float(image["bottom"]),
                    )
                    for image in first.images
                ]
                return PdfInfo(
                    page_count=len(pdf.pages),
                    first_page_width=float(first.width),
                    first_page_height=float(first.height),
                    first_page_images=images,
                )
        except Exception as exc:
            raise InvalidPdfError(f"pdfplumber could not read PDF: {exc}") from exc
