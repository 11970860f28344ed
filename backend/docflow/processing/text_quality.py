"""
Text cleaning, validation and confidence scoring.

Every strategy of the extraction cascade (parse, OCR, salvage) runs its
output through the same three functions:

    cleaned = clean_text(raw)
    reason = rejection_reason(cleaned)      # None means accepted
    confidence = calculate_confidence(cleaned)
"""

from __future__ import annotations

import re

MIN_TEXT_LENGTH = 20
PRINTABLE_RATIO_THRESHOLD = 0.3
BASE64_MIN_LENGTH = 50
MAX_LONG_REPEATS = 2
MAX_BINARY_TOKENS = 5

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_HORIZONTAL_WS = re.compile(r"[ \t\f\v\xa0]+")
_BLANK_LINES = re.compile(r"\n\s*\n\s*\n+")
_LONG_REPEAT = re.compile(r"(.)\1{10,}")
_SHORT_REPEAT = re.compile(r"(.)\1{5,}")
# PDF stream offsets ("0000012345n") leaking out of broken xref tables
_BINARY_TOKEN = re.compile(r"\b\d{5,}n\b")
_ELLIPSIS = re.compile(r"\.{3,}")
_BASE64_ALPHABET = re.compile(r"^[A-Za-z0-9+/=\s]+$")
_COMMON_WORDS = re.compile(
    r"\b(the|and|for|with|this|that|from|are|was|you|your|our|invoice|total|date|amount|page|to|of|is|in)\b",
    re.IGNORECASE,
)


def _is_printable(ch: str) -> bool:
    if ch in "\n\r\t":
        return True
    code = ord(ch)
    if 0x20 <= code < 0x7F:
        return True
    return code > 0x7F and ch.isalpha()


def printable_ratio(text: str) -> float:
    if not text:
        return 0.0
    return sum(1 for ch in text if _is_printable(ch)) / len(text)


def clean_text(text: str) -> str:
    """Strip control chars, collapse whitespace and repeated-character runs, cap ellipses."""
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _BLANK_LINES.sub("\n\n", text)
    text = _LONG_REPEAT.sub(r"\1", text)
    text = _BINARY_TOKEN.sub("", text)
    text = _ELLIPSIS.sub("...", text)
    lines = [line.strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def looks_like_base64(text: str) -> bool:
    """True for long runs of base64 alphabet with almost no spaces and no English words."""
    if len(text) < BASE64_MIN_LENGTH:
        return False
    if not _BASE64_ALPHABET.match(text):
        return False
    space_ratio = text.count(" ") / len(text)
    if space_ratio > 0.1:
        return False
    return _COMMON_WORDS.search(text) is None


def is_likely_junk(
    text: str,
    *,
    min_length: int = MIN_TEXT_LENGTH,
    printable_threshold: float = PRINTABLE_RATIO_THRESHOLD,
) -> bool:
    return _junk_reason(text, min_length, printable_threshold) is not None


def _junk_reason(text: str, min_length: int, printable_threshold: float) -> str | None:
    if len(text.strip()) < min_length:
        return "too_short"
    if printable_ratio(text) < printable_threshold:
        return "low_printable_ratio"
    if len(_LONG_REPEAT.findall(text)) > MAX_LONG_REPEATS:
        return "repeated_patterns"
    if len(_BINARY_TOKEN.findall(text)) > MAX_BINARY_TOKENS:
        return "binary_patterns"
    return None


def rejection_reason(
    text: str,
    *,
    min_length: int = MIN_TEXT_LENGTH,
    printable_threshold: float = PRINTABLE_RATIO_THRESHOLD,
) -> str | None:
    """Why `text` is not usable as document text, or None when it is."""
    reason = _junk_reason(text, min_length, printable_threshold)
    if reason:
        return reason
    if looks_like_base64(text):
        return "base64"
    return None


def calculate_confidence(text: str) -> float:
    """
    0.5 base, + up to 0.3 for printable ratio, + up to 0.2 for length,
    - 0.1 per repeated-character run, - 0.05 per binary-looking token.
    """
    if not text:
        return 0.0
    confidence = 0.5
    confidence += printable_ratio(text) * 0.3
    confidence += min(0.2, len(text) / 1000)
    confidence -= len(_SHORT_REPEAT.findall(text)) * 0.1
    confidence -= len(_BINARY_TOKEN.findall(text)) * 0.05
    return max(0.0, min(1.0, confidence))


def word_count(text: str) -> int:
    return len(text.split())
