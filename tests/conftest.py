import io
from collections.abc import Callable

import pymupdf
import pytest
from reportlab.lib.pagesizes import A4, letter
from reportlab.pdfgen import canvas


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Building permit")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page A4 PDF, like a typical permit.pdf."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.drawString(72, 760, "Permit page one")
    c.showPage()
    c.drawString(72, 760, "Permit page two")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def blank_pdf_bytes() -> bytes:
    """Generate a valid PDF with a single blank page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture(params=["RC4-128", "AES-256"])
def encrypted_pdf_bytes(request: pytest.FixtureRequest, sample_pdf_bytes: bytes) -> bytes:
    """The sample PDF encrypted with an owner password and an empty user password."""
    from pypdf import PdfReader, PdfWriter

    writer = PdfWriter(clone_from=PdfReader(io.BytesIO(sample_pdf_bytes)))
    writer.encrypt(user_password="", owner_password="owner", algorithm=request.param)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture()
def qr_png_bytes() -> bytes:
    from permitqr.qr.generator import QrGenerator

    return QrGenerator().generate("https://permitqrcode.lovable.app/document/KASUPDA-PERMIT-001")


@pytest.fixture()
def decode_qr() -> Callable[[bytes], str]:
    """Return a decoder for the first QR code in a PNG (needs OpenCV)."""
    cv2 = pytest.importorskip("cv2")
    np = pytest.importorskip("numpy")
    from PIL import Image

    def _decode(png_bytes: bytes) -> str:
        image = np.array(Image.open(io.BytesIO(png_bytes)).convert("L"))
        text, _points, _raw = cv2.QRCodeDetector().detectAndDecode(image)
        return text

    return _decode


def render_first_page(pdf_bytes: bytes, dpi: int = 300) -> bytes:
    """Rasterise page one of a PDF to PNG."""
    with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc[0].get_pixmap(dpi=dpi).tobytes("png")


def count_pages(pdf_bytes: bytes) -> int:
    with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc.page_count


@pytest.fixture()
def render_page() -> Callable[[bytes], bytes]:
    return render_first_page


@pytest.fixture()
def page_count() -> Callable[[bytes], int]:
    return count_pages
