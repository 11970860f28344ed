"""
Format Detector — identifies the input format and therefore which
parsers the extraction cascade tries.
"""

from __future__ import annotations

from docflow.core.constants import FileFormat

_TEXT_MIME_TYPES = {
    "application/json",
    "application/xml",
    "application/csv",
    "application/x-yaml",
}

_IMAGE_MAGIC = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",
    b"GIF87a",
    b"GIF89a",
    b"II*\x00",
    b"MM\x00*",
    b"BM",
)


def _is_image_magic(data: bytes) -> bool:
    if data.startswith(_IMAGE_MAGIC):
        return True
    return data[:4] == b"RIFF" and data[8:12] == b"WEBP"


def _looks_like_text(data: bytes) -> bool:
    sample = data[:4096]
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multibyte char cut at the sample boundary is still text
        if exc.start < len(sample) - 4:
            return False
    return b"\x00" not in sample


def detect_format(data: bytes, mime_type: str | None = None) -> FileFormat:
    """
    Detect file format from the declared mime type, then magic bytes.

    Returns one of: PDF, IMAGE, TEXT, BINARY.
    """
    mime = (mime_type or "").split(";", 1)[0].strip().lower()

    if mime == "application/pdf":
        return FileFormat.PDF
    if mime.startswith("image/"):
        return FileFormat.IMAGE
    if mime.startswith("text/") or mime in _TEXT_MIME_TYPES:
        return FileFormat.TEXT

    if b"%PDF" in data[:1024]:
        return FileFormat.PDF
    if _is_image_magic(data):
        return FileFormat.IMAGE
    if data and _looks_like_text(data):
        return FileFormat.TEXT
    return FileFormat.BINARY
