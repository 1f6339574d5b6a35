import io
from typing import ClassVar

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

from permitqr.qr.exceptions import EncodingError


class QrGenerator:
    """Renders a URL as a black-on-white PNG QR code."""

    ERROR_CORRECTION_LEVELS: ClassVar[dict[str, int]] = {
        "L": ERROR_CORRECT_L,
        "M": ERROR_CORRECT_M,
        "Q": ERROR_CORRECT_Q,
        "H": ERROR_CORRECT_H,
    }

    def __init__(
        self,
        *,
        error_correction: str = "M",
        box_size: int = 10,
        border: int = 4,
    ) -> None:
        level = self.ERROR_CORRECTION_LEVELS.get(error_correction.upper())
        if level is None:
            raise ValueError(
                f"Unknown error correction level '{error_correction}'. "
                f"Choose from: {list(self.ERROR_CORRECTION_LEVELS)}"
            )
        self._error_correction = level
        self._box_size = box_size
        self._border = border

    def generate(self, url: str) -> bytes:
        """Encode ``url`` and return the PNG bytes.

        The URL is not validated; whatever string is given is what a scanner
        reads back.

        Raises:
            EncodingError: if the payload is empty or exceeds QR capacity.
        """
        if not url:
            raise EncodingError("Cannot encode an empty payload")
        qr = qrcode.QRCode(
            version=None,
            error_correction=self._error_correction,
            box_size=self._box_size,
            border=self._border,
            image_factory=PilImage,
        )
        try:
            qr.add_data(url)
            qr.make(fit=True)
        except (DataOverflowError, ValueError) as exc:
            raise EncodingError(f"QR encoding failed: {exc}") from exc

        image = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        return buf.getvalue()
