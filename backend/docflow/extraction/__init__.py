"""Field extraction: AI strategies blended with a regex baseline."""

from docflow.extraction.engine import FieldExtractionEngine, FieldExtractionResult
from docflow.extraction.strategies import ExtractedField, resolve_field

__all__ = [
    "ExtractedField",
    "FieldExtractionEngine",
    "FieldExtractionResult",
    "resolve_field",
]
