"""
Raw-byte salvage strategies — last resort after parse and OCR fail.

Strategies run in order; the pipeline validates each candidate with the
same junk/base64 checks as parsed text and keeps the first that passes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

_NON_PRINTABLE_ASCII = bytes(b for b in range(256) if not (0x20 <= b < 0x7F or b in (0x09, 0x0A, 0x0D)))
_SPACES = bytes(len(_NON_PRINTABLE_ASCII) * [0x20])
_TO_SPACE = bytes.maketrans(_NON_PRINTABLE_ASCII, _SPACES)

_HEX_STRING = re.compile(rb"<([0-9A-Fa-f\s]{8,})>")
_HEX_RUN = re.compile(rb"\b(?:[0-9A-Fa-f]{2}){16,}\b")
_HEX_KEEP = re.compile(r"[^A-Za-z0-9\s.,:;$#/%()-]")

_TEXT_BLOCK = re.compile(rb"BT(.*?)ET", re.DOTALL)
_LITERAL = re.compile(rb"\(((?:\\.|[^\\()])*)\)", re.DOTALL)
_ARRAY = re.compile(rb"\[([^\[\]]*)\]", re.DOTALL)
_ESCAPES = {b"n": b"\n", b"r": b"\r", b"t": b"\t", b"(": b"(", b")": b")", b"\\": b"\\"}
_ESCAPE = re.compile(rb"\\(.)", re.DOTALL)


@dataclass(frozen=True)
class SalvageStrategy:
    name: str
    extract: Callable[[bytes], str]


def printable_ascii_filter(data: bytes) -> str:
    """Keep printable ASCII, turning everything else into spaces."""
    return data.translate(_TO_SPACE).decode("ascii")


def hex_decoded_filter(data: bytes) -> str:
    """Decode hex-encoded strings (`<48656C6C6F>` and long hex runs), keeping readable characters."""
    pieces: list[str] = []
    candidates = [m.group(1) for m in _HEX_STRING.finditer(data)]
    candidates += [m.group(0) for m in _HEX_RUN.finditer(data)]
    for raw in candidates:
        digits = re.sub(rb"\s+", b"", raw)
        if len(digits) % 2:
            digits += b"0"
        try:
            decoded = bytes.fromhex(digits.decode("ascii")).decode("latin-1")
        except ValueError:
            continue
        kept = _HEX_KEEP.sub(" ", decoded).strip()
        if kept:
            pieces.append(kept)
    return " ".join(pieces)


def _unescape(literal: bytes) -> bytes:
    return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), literal)


def _literals(chunk: bytes) -> list[str]:
    return [
        _unescape(m.group(1)).translate(_TO_SPACE).decode("ascii").strip()
        for m in _LITERAL.finditer(chunk)
    ]


def marker_delimited_extraction(data: bytes) -> str:
    """Pull string literals out of BT…ET text blocks, then loose (…) and […] spans."""
    pieces: list[str] = []
    for block in _TEXT_BLOCK.finditer(data):
        pieces.extend(_literals(block.group(1)))
    if not pieces:
        for array in _ARRAY.finditer(data):
            pieces.extend(_literals(array.group(1)))
    if not pieces:
        pieces.extend(_literals(data))
    return " ".join(p for p in pieces if p)


SALVAGE_STRATEGIES: tuple[SalvageStrategy, ...] = (
    SalvageStrategy("printable_ascii", printable_ascii_filter),
    SalvageStrategy("hex_decoded", hex_decoded_filter),
    SalvageStrategy("marker_delimited", marker_delimited_extraction),
)
