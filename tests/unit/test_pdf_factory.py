from unittest.mock import MagicMock

import pytest

from permitqr.pdf.factory import PdfStamperFactory
from permitqr.pdf.pymupdf_adapter import PyMuPdfStamper
from permitqr.pdf.pypdf_adapter import PyPdfStamper


class TestPdfStamperFactory:
    def test_creates_pymupdf(self) -> None:
        settings = MagicMock(pdf_engine="pymupdf")

        assert isinstance(PdfStamperFactory.create(settings), PyMuPdfStamper)

    def test_creates_pypdf(self) -> None:
        settings = MagicMock(pdf_engine="PyPDF")

        assert isinstance(PdfStamperFactory.create(settings), PyPdfStamper)

    def test_unknown_engine_raises(self) -> None:
        settings = MagicMock(pdf_engine="ghostscript")

        with pytest.raises(ValueError, match="Unknown PDF engine 'ghostscript'"):
            PdfStamperFactory.create(settings)
