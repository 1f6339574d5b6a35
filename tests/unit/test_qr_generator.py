import io
from collections.abc import Callable

import pytest
from PIL import Image

from permitqr.qr.exceptions import EncodingError, QrError
from permitqr.qr.generator import QrGenerator

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
URL = "https://permitqrcode.lovable.app/document/KASUPDA-PERMIT-001"


class TestQrGenerator:
    def test_returns_png(self) -> None:
        png = QrGenerator().generate(URL)

        assert png.startswith(PNG_SIGNATURE)

    def test_round_trip(self, decode_qr: Callable[[bytes], str]) -> None:
        png = QrGenerator().generate(URL)

        assert decode_qr(png) == URL

    def test_encodes_non_url_text_verbatim(self, decode_qr: Callable[[bytes], str]) -> None:
        png = QrGenerator().generate("not a url")

        assert decode_qr(png) == "not a url"

    def test_same_input_same_output(self) -> None:
        generator = QrGenerator()

        assert generator.generate(URL) == generator.generate(URL)

    def test_higher_error_correction_needs_more_modules(self) -> None:
        low = QrGenerator(error_correction="L", border=0).generate(URL * 3)
        high = QrGenerator(error_correction="H", border=0).generate(URL * 3)

        assert Image.open(io.BytesIO(high)).size[0] > Image.open(io.BytesIO(low)).size[0]

    def test_empty_payload_raises(self) -> None:
        with pytest.raises(EncodingError):
            QrGenerator().generate("")

    def test_payload_over_capacity_raises(self) -> None:
        with pytest.raises(EncodingError):
            QrGenerator(error_correction="H").generate("x" * 5000)

    def test_encoding_error_is_qr_error(self) -> None:
        assert issubclass(EncodingError, QrError)

    def test_unknown_error_correction_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown error correction level"):
            QrGenerator(error_correction="Z")
