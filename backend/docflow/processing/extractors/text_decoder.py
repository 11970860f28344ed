"""Plain-text decoding for text/* uploads."""

from __future__ import annotations

import codecs

from docflow.core.constants import FileFormat
from docflow.processing.extractors.base import BaseParser, ParseOutcome

_BOMS = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


class PlainTextDecoder(BaseParser):
    """Decode bytes as text.  errors="strict" raises on undecodable input."""

    def __init__(self, name: str = "text", *, encoding: str = "utf-8", errors: str = "strict") -> None:
        self.name = name
        self.encoding = encoding
        self.errors = errors

    def supports_format(self, fmt: FileFormat) -> bool:
        return fmt == FileFormat.TEXT

    def parse(self, data: bytes) -> ParseOutcome:
        encoding = self.encoding
        for bom, bom_encoding in _BOMS:
            if data.startswith(bom):
                encoding = bom_encoding
                break
        text = data.decode(encoding, errors=self.errors)
        return ParseOutcome(parser=self.name, text=text, pages_total=1, pages_parsed=1)
