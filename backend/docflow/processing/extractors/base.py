"""
Abstract base class for all text parsers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from docflow.core.constants import FileFormat


@dataclass
class ParseOutcome:
    """Raw text produced by one parser configuration."""

    parser: str
    text: str
    pages_total: int = 0
    pages_parsed: int = 0
    has_images: bool = False
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "parser": self.parser,
            "pages_total": self.pages_total,
            "pages_parsed": self.pages_parsed,
            "has_images": self.has_images,
            "errors": self.errors[:10],
        }


class BaseParser(ABC):
    """Base interface for document parsers.  Parsing is synchronous and may block."""

    name: str = "unnamed_parser"

    @abstractmethod
    def parse(self, data: bytes) -> ParseOutcome:
        """Parse `data` into text.  Raise on total failure."""
        ...

    @abstractmethod
    def supports_format(self, fmt: FileFormat) -> bool:
        """Return True if this parser handles the given format."""
        ...
