from permitqr.config.settings import Settings
from permitqr.pdf.base import BasePdfStamper
from permitqr.pdf.pymupdf_adapter import PyMuPdfStamper
from permitqr.pdf.pypdf_adapter import PyPdfStamper


class PdfStamperFactory:
    """Creates the correct PDF stamper based on settings."""

    ADAPTERS: dict[str, type[BasePdfStamper]] = {
        "pymupdf": PyMuPdfStamper,
        "pypdf": PyPdfStamper,
    }

    @classmethod
    def create(cls, settings: Settings) -> BasePdfStamper:
        engine = settings.pdf_engine.lower()
        adapter_cls = cls.ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls()
