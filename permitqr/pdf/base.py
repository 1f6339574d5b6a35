from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Corner(str, Enum):
    TOP_RIGHT = "top_right"
    TOP_LEFT = "top_left"
    BOTTOM_RIGHT = "bottom_right"
    BOTTOM_LEFT = "bottom_left"


@dataclass(frozen=True)
class StampPosition:
    """Square overlay footprint anchored at a fixed offset from one page corner."""

    corner: Corner = Corner.TOP_RIGHT
    size: float = 82.5
    margin: float = 15.0

    def box(self, page_width: float, page_height: float) -> tuple[float, float, float, float]:
        """Return ``(x0, y0, x1, y1)`` in PDF user space (origin bottom-left)."""
        if self.corner in (Corner.TOP_RIGHT, Corner.BOTTOM_RIGHT):
            x0 = page_width - self.size - self.margin
        else:
            x0 = self.margin
        if self.corner in (Corner.TOP_RIGHT, Corner.TOP_LEFT):
            y0 = page_height - self.size - self.margin
        else:
            y0 = self.margin
        return (x0, y0, x0 + self.size, y0 + self.size)


class BasePdfStamper(ABC):
    """Contract for all PDF stamping adapters."""

    @abstractmethod
    def stamp(self, pdf_bytes: bytes, image_bytes: bytes, position: StampPosition) -> bytes:
        """Overlay an image on the first page and return the re-serialized PDF.

        Args:
            pdf_bytes: Raw PDF file content. Left untouched.
            image_bytes: PNG payload to draw, stretched to the square footprint.
            position: Where on the first page the image goes.

        Returns:
            A new PDF byte string with the same page count as the input.

        Raises:
            InvalidPdfError: if the document cannot be parsed.
            EmptyDocumentError: if the document has zero pages.
        """
