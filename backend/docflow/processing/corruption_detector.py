"""
CorruptionDetector — scores raw bytes for structural damage (0–10).

The score drives the first strategy of the extraction cascade:

    score < 4   → strict parse
    4 ≤ score < 7 → relaxed parse (skip malformed pages, cap page count)
    score ≥ 7   → skip parsing, go straight to OCR / salvage

Marker and run detection works on the buffer with non-printable bytes
removed, so a marker split by a stray control byte still counts as
present and injecting more non-printable bytes can only raise the score.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

PRINTABLE_BYTES = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}
NON_PRINTABLE_BYTES = bytes(b for b in range(256) if b not in PRINTABLE_BYTES)

MAX_SCORE = 10
RELAXED_PARSE_THRESHOLD = 4
SKIP_PARSE_THRESHOLD = 7

# ── Weights ──────────────────────────────────────────────
MISSING_HEADER_WEIGHT = 3
MISSING_EOF_WEIGHT = 2
MISSING_XREF_WEIGHT = 1
MISSING_TRAILER_WEIGHT = 1
OBJECT_MISMATCH_WEIGHT = 2
MAX_BINARY_WEIGHT = 3
MAX_REPEAT_WEIGHT = 2
BINARY_RATIO_FLOOR = 0.1
HEADER_SEARCH_BYTES = 1024

_REPEAT_RUN = re.compile(rb"(.)\1{20,}", re.DOTALL)
_OBJ = re.compile(rb"\b\d+\s+\d+\s+obj\b")
_ENDOBJ = re.compile(rb"\bendobj\b")


class ParseMode(StrEnum):
    STRICT = "strict"
    RELAXED = "relaxed"
    SKIP = "skip"


@dataclass
class CorruptionReport:
    """Score plus the individual signals that produced it."""

    score: int
    non_printable_ratio: float = 0.0
    signals: list[str] = field(default_factory=list)

    @property
    def parse_mode(self) -> ParseMode:
        return parse_mode_for(self.score)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "non_printable_ratio": round(self.non_printable_ratio, 4),
            "signals": list(self.signals),
            "parse_mode": self.parse_mode,
        }


def parse_mode_for(score: int) -> ParseMode:
    if score >= SKIP_PARSE_THRESHOLD:
        return ParseMode.SKIP
    if score >= RELAXED_PARSE_THRESHOLD:
        return ParseMode.RELAXED
    return ParseMode.STRICT


class CorruptionDetector:
    """Heuristic damage score for document bytes."""

    def score(self, data: bytes, *, check_structure: bool = True) -> CorruptionReport:
        """
        Args:
            data: Raw document bytes.
            check_structure: Apply PDF structural-marker checks.  Off for
                plain-text inputs, which have no such markers.
        """
        if not data:
            return CorruptionReport(score=MAX_SCORE if check_structure else 0, signals=["empty"])

        visible = data.translate(None, NON_PRINTABLE_BYTES)
        ratio = (len(data) - len(visible)) / len(data)

        score = 0
        signals: list[str] = []

        if check_structure:
            if b"%PDF" not in visible[:HEADER_SEARCH_BYTES]:
                score += MISSING_HEADER_WEIGHT
                signals.append("missing_header")
            if b"%%EOF" not in visible:
                score += MISSING_EOF_WEIGHT
                signals.append("missing_eof")
            if b"xref" not in visible:
                score += MISSING_XREF_WEIGHT
                signals.append("missing_xref")
            if b"trailer" not in visible:
                score += MISSING_TRAILER_WEIGHT
                signals.append("missing_trailer")
            if len(_OBJ.findall(visible)) != len(_ENDOBJ.findall(visible)):
                score += OBJECT_MISMATCH_WEIGHT
                signals.append("object_mismatch")

        if ratio > BINARY_RATIO_FLOOR:
            score += min(MAX_BINARY_WEIGHT, math.floor(ratio * 10))
            signals.append("binary_content")

        repeats = len(_REPEAT_RUN.findall(visible))
        if repeats:
            score += min(MAX_REPEAT_WEIGHT, repeats)
            signals.append("repeated_runs")

        return CorruptionReport(
            score=max(0, min(MAX_SCORE, score)),
            non_printable_ratio=ratio,
            signals=signals,
        )
