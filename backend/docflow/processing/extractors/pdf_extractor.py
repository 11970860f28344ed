"""PDF text extraction using pypdf, with pdfplumber as an alternate engine."""

from __future__ import annotations

import io

import pdfplumber
from pypdf import PdfReader

from docflow.core.constants import FileFormat
from docflow.core.logging import get_logger
from docflow.processing.extractors.base import BaseParser, ParseOutcome

logger = get_logger(__name__)


def _open_reader(data: bytes, strict: bool) -> PdfReader:
    reader = PdfReader(io.BytesIO(data), strict=strict)
    if reader.is_encrypted:
        # Owner-password-only PDFs open with an empty user password
        if not reader.decrypt(""):
            raise ValueError("PDF is password-protected")
    return reader


class PypdfParser(BaseParser):
    """
    pypdf text extraction.

    strict=True raises on the first malformed structure or page;
    strict=False skips broken pages and keeps whatever text survives.
    """

    def __init__(
        self,
        name: str = "pypdf",
        *,
        strict: bool = True,
        max_pages: int = 50,
        extraction_mode: str = "plain",
        orientations: tuple[int, ...] | None = None,
    ) -> None:
        self.name = name
        self.strict = strict
        self.max_pages = max_pages
        self.extraction_mode = extraction_mode
        self.orientations = orientations

    def supports_format(self, fmt: FileFormat) -> bool:
        return fmt in (FileFormat.PDF, FileFormat.BINARY)

    def parse(self, data: bytes) -> ParseOutcome:
        reader = _open_reader(data, self.strict)
        total = len(reader.pages)
        outcome = ParseOutcome(parser=self.name, text="", pages_total=total)

        kwargs = {"extraction_mode": self.extraction_mode}
        if self.orientations is not None:
            kwargs["orientations"] = self.orientations

        texts: list[str] = []
        for index in range(min(total, self.max_pages)):
            try:
                page = reader.pages[index]
                texts.append(page.extract_text(**kwargs) or "")
                outcome.pages_parsed += 1
                if not outcome.has_images and _page_has_images(page):
                    outcome.has_images = True
            except Exception as exc:
                if self.strict:
                    raise
                outcome.errors.append(f"page {index + 1}: {exc}")

        outcome.text = "\n\n".join(t for t in texts if t)
        return outcome


class PdfPlumberParser(BaseParser):
    """pdfminer-based extraction; tolerates some layouts pypdf mangles."""

    name = "pdfplumber"

    def __init__(self, *, max_pages: int = 50) -> None:
        self.max_pages = max_pages

    def supports_format(self, fmt: FileFormat) -> bool:
        return fmt in (FileFormat.PDF, FileFormat.BINARY)

    def parse(self, data: bytes) -> ParseOutcome:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            outcome = ParseOutcome(parser=self.name, text="", pages_total=len(pdf.pages))
            texts: list[str] = []
            for index, page in enumerate(pdf.pages[: self.max_pages]):
                try:
                    texts.append(page.extract_text() or "")
                    outcome.pages_parsed += 1
                    if page.images:
                        outcome.has_images = True
                except Exception as exc:
                    outcome.errors.append(f"page {index + 1}: {exc}")
            outcome.text = "\n\n".join(t for t in texts if t)
            return outcome


def _page_has_images(page) -> bool:
    try:
        return len(page.images) > 0
    except Exception:
        return False


def extract_page_images(data: bytes, *, max_images: int = 3) -> list[bytes]:
    """Pull embedded raster images out of a PDF for OCR.  Empty list if none or unreadable."""
    try:
        reader = _open_reader(data, strict=False)
    except Exception as exc:
        logger.debug("Cannot open PDF for image extraction", error=str(exc))
        return []

    images: list[bytes] = []
    for page in reader.pages:
        try:
            for image in page.images:
                images.append(image.data)
                if len(images) >= max_images:
                    return images
        except Exception as exc:
            logger.debug("Skipping page images", error=str(exc))
    return images
