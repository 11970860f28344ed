"""
Text Extraction Pipeline — the resilient fallback cascade.

    1. Detect format and score corruption
    2. Primary parse (strict or relaxed by corruption score; skipped when ≥ 7)
    3. Up to N alternate parser configurations
    4. OCR (only for image content or total parse failure)
    5. Raw-byte salvage strategies
    6. Labeled failure text

Every strategy's output goes through clean → validate → score.  The
pipeline never raises for malformed input: the worst case is a
human-readable failure string with confidence 0.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from docflow.core.constants import ExtractionSource, FileFormat
from docflow.core.logging import get_logger
from docflow.core.tracing import traceable_step
from docflow.processing.corruption_detector import CorruptionDetector, ParseMode
from docflow.processing.extractors.base import BaseParser, ParseOutcome
from docflow.processing.extractors.pdf_extractor import (
    PdfPlumberParser,
    PypdfParser,
    extract_page_images,
)
from docflow.processing.extractors.text_decoder import PlainTextDecoder
from docflow.processing.format_detector import detect_format
from docflow.processing.ocr.engine import OcrEngine, OcrOutcome
from docflow.processing.salvage import SALVAGE_STRATEGIES
from docflow.processing.text_quality import (
    MIN_TEXT_LENGTH,
    PRINTABLE_RATIO_THRESHOLD,
    calculate_confidence,
    clean_text,
    rejection_reason,
    word_count,
)

logger = get_logger(__name__)

# Salvaged text is recovered from raw bytes and never fully trusted
SALVAGE_CONFIDENCE_FACTOR = 0.5


@dataclass
class TextExtractionResult:
    """Labeled, confidence-scored outcome of the cascade."""

    text: str
    source: ExtractionSource
    confidence: float
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def is_soft_failure(self) -> bool:
        return self.source == ExtractionSource.SALVAGE_FAILED or bool(self.stats.get("ocr_placeholder"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "source": self.source,
            "confidence": round(self.confidence, 4),
            "stats": self.stats,
        }


class TextExtractionPipeline:
    """
    Usage::

        pipeline = TextExtractionPipeline(OcrEngine(inference_client))
        result = await pipeline.extract(data, "application/pdf", filename="inv.pdf")
    """

    def __init__(
        self,
        ocr_engine: OcrEngine | None = None,
        *,
        detector: CorruptionDetector | None = None,
        min_text_length: int = MIN_TEXT_LENGTH,
        printable_threshold: float = PRINTABLE_RATIO_THRESHOLD,
        max_pages: int = 50,
        relaxed_max_pages: int = 5,
        alternate_attempts: int = 3,
    ) -> None:
        self.ocr_engine = ocr_engine or OcrEngine()
        self.detector = detector or CorruptionDetector()
        self.min_text_length = min_text_length
        self.printable_threshold = printable_threshold
        self.max_pages = max_pages
        self.relaxed_max_pages = relaxed_max_pages
        self.alternate_attempts = alternate_attempts

    # ── Public API ───────────────────────────────────────

    @traceable_step(name="text_extraction", run_type="chain")
    async def extract(
        self,
        data: bytes,
        mime_type: str | None = None,
        *,
        filename: str | None = None,
    ) -> TextExtractionResult:
        started = time.monotonic()
        name = filename or "document"
        log = logger.bind(filename=name, mime_type=mime_type, size_bytes=len(data or b""))

        try:
            result = await self._run(data or b"", mime_type or "", name)
        except Exception as exc:
            # Contract: malformed input never escapes as an exception
            log.exception("Text extraction crashed, returning failure result", error=str(exc))
            result = self._failure(name, f"unexpected error: {exc}", {})

        result.stats["duration_ms"] = int((time.monotonic() - started) * 1000)
        log.info(
            "Text extraction finished",
            source=result.source,
            confidence=round(result.confidence, 3),
            text_length=len(result.text),
        )
        return result

    # ── Cascade ──────────────────────────────────────────

    async def _run(self, data: bytes, mime_type: str, name: str) -> TextExtractionResult:
        if not data:
            return self._failure(name, "the document is empty", {"size_bytes": 0})

        fmt = detect_format(data, mime_type)
        report = self.detector.score(data, check_structure=fmt in (FileFormat.PDF, FileFormat.BINARY))
        attempts: list[dict[str, Any]] = []
        stats: dict[str, Any] = {
            "format": fmt,
            "mime_type": mime_type,
            "size_bytes": len(data),
            "corruption": report.to_dict(),
            "attempts": attempts,
        }
        last_error = "no strategy produced readable text"

        parse_mode = report.parse_mode
        total_parse_failure = True
        has_images = fmt == FileFormat.IMAGE

        # ── Structured parse ──────────────────────────
        if fmt != FileFormat.IMAGE and parse_mode != ParseMode.SKIP:
            parsers = [self._primary_parser(fmt, parse_mode), *self._alternate_parsers(fmt)]
            for index, parser in enumerate(parsers):
                source = ExtractionSource.PRIMARY_PARSE if index == 0 else ExtractionSource.ALTERNATE_PARSE
                outcome = await self._parse(parser, data, attempts)
                if outcome is None:
                    continue
                has_images = has_images or outcome.has_images
                if outcome.text.strip():
                    total_parse_failure = False

                text = clean_text(outcome.text)
                reason = self._rejection(text)
                if reason is None:
                    stats.update(outcome.to_dict(), parse_mode=parse_mode)
                    return self._result(text, source, stats)
                attempts.append({"strategy": parser.name, "rejected": reason})
                last_error = f"{parser.name} output rejected ({reason})"

        # ── OCR ───────────────────────────────────────
        ocr_outcome: OcrOutcome | None = None
        if parse_mode == ParseMode.SKIP or total_parse_failure or has_images:
            images = await self._collect_images(fmt, data)
            ocr_outcome = await self.ocr_engine.recognize(images)
            if ocr_outcome.placeholder:
                attempts.append({"strategy": "ocr", "error": ocr_outcome.reason})
                last_error = f"OCR unavailable ({ocr_outcome.reason})"
            else:
                text = clean_text(ocr_outcome.text)
                reason = self._rejection(text)
                if reason is None:
                    stats["ocr_images"] = ocr_outcome.images_processed
                    return self._result(text, ExtractionSource.OCR, stats)
                attempts.append({"strategy": "ocr", "rejected": reason})
                last_error = f"OCR output rejected ({reason})"

        # ── Salvage (raster bytes hold no text) ───────
        salvage = SALVAGE_STRATEGIES if fmt != FileFormat.IMAGE else ()
        for strategy in salvage:
            try:
                text = clean_text(strategy.extract(data))
            except Exception as exc:
                attempts.append({"strategy": strategy.name, "error": str(exc)})
                continue
            reason = self._rejection(text)
            if reason is None:
                stats["salvage_strategy"] = strategy.name
                return self._result(text, ExtractionSource.SALVAGE, stats, factor=SALVAGE_CONFIDENCE_FACTOR)
            attempts.append({"strategy": strategy.name, "rejected": reason})

        if ocr_outcome is not None and ocr_outcome.placeholder:
            stats.update(
                ocr_placeholder=True,
                method=ExtractionSource.OCR,
                confidence=0.0,
                text_length=len(ocr_outcome.text),
                word_count=word_count(ocr_outcome.text),
            )
            return TextExtractionResult(
                text=ocr_outcome.text,
                source=ExtractionSource.OCR,
                confidence=0.0,
                stats=stats,
            )

        return self._failure(name, last_error, stats)

    # ── Strategy helpers ─────────────────────────────────

    def _primary_parser(self, fmt: FileFormat, mode: ParseMode) -> BaseParser:
        strict = mode == ParseMode.STRICT
        if fmt == FileFormat.TEXT:
            return PlainTextDecoder("text-utf8", errors="strict" if strict else "replace")
        return PypdfParser(
            "pypdf-strict" if strict else "pypdf-relaxed",
            strict=strict,
            max_pages=self.max_pages if strict else self.relaxed_max_pages,
        )

    def _alternate_parsers(self, fmt: FileFormat) -> list[BaseParser]:
        if fmt == FileFormat.TEXT:
            parsers: list[BaseParser] = [
                PlainTextDecoder("text-utf8-replace", errors="replace"),
                PlainTextDecoder("text-cp1252", encoding="cp1252", errors="replace"),
            ]
        else:
            parsers = [
                PypdfParser("pypdf-layout", strict=False, max_pages=self.max_pages, extraction_mode="layout"),
                PypdfParser("pypdf-upright", strict=False, max_pages=self.max_pages, orientations=(0,)),
                PdfPlumberParser(max_pages=self.max_pages),
            ]
        return parsers[: self.alternate_attempts]

    async def _parse(
        self,
        parser: BaseParser,
        data: bytes,
        attempts: list[dict[str, Any]],
    ) -> ParseOutcome | None:
        try:
            return await asyncio.to_thread(parser.parse, data)
        except Exception as exc:
            # Parsers see hostile bytes; any exception is a failed attempt
            attempts.append({"strategy": parser.name, "error": f"{type(exc).__name__}: {exc}"[:300]})
            return None

    async def _collect_images(self, fmt: FileFormat, data: bytes) -> list[bytes]:
        if fmt == FileFormat.IMAGE:
            return [data]
        if fmt in (FileFormat.PDF, FileFormat.BINARY):
            return await asyncio.to_thread(
                extract_page_images, data, max_images=self.ocr_engine.max_images
            )
        return []

    def _rejection(self, text: str) -> str | None:
        return rejection_reason(
            text,
            min_length=self.min_text_length,
            printable_threshold=self.printable_threshold,
        )

    @staticmethod
    def _result(
        text: str,
        source: ExtractionSource,
        stats: dict[str, Any],
        *,
        factor: float = 1.0,
    ) -> TextExtractionResult:
        confidence = max(0.0, min(1.0, calculate_confidence(text) * factor))
        stats.update(
            method=source,
            confidence=round(confidence, 4),
            text_length=len(text),
            word_count=word_count(text),
        )
        return TextExtractionResult(text=text, source=source, confidence=confidence, stats=stats)

    @staticmethod
    def _failure(name: str, reason: str, stats: dict[str, Any]) -> TextExtractionResult:
        text = (
            f"Text extraction failed for {name}: {reason}. "
            "The document may be corrupted, password-protected, or contain only images."
        )
        stats.update(method=ExtractionSource.SALVAGE_FAILED, confidence=0.0, text_length=0, word_count=0)
        return TextExtractionResult(
            text=text,
            source=ExtractionSource.SALVAGE_FAILED,
            confidence=0.0,
            stats=stats,
        )
