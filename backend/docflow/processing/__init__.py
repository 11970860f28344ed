"""Text extraction: corruption scoring, parser cascade, OCR and salvage."""

from docflow.processing.pipeline import TextExtractionPipeline, TextExtractionResult

__all__ = ["TextExtractionPipeline", "TextExtractionResult"]
