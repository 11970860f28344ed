"""
OCR engine — image-to-text through the inference service.

Never raises: when the service is missing, slow or failing the result is
a clearly labeled placeholder instead of empty text.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from docflow.core.logging import get_logger
from docflow.integrations.inference_client import InferenceClient
from docflow.pipeline.errors import InferenceError

logger = get_logger(__name__)

PLACEHOLDER_PREFIX = "[OCR unavailable]"


@dataclass
class OcrOutcome:
    text: str
    images_processed: int = 0
    placeholder: bool = False
    reason: str | None = None


class OcrEngine:
    """Runs image-to-text on up to `max_images` images, each time-bounded."""

    def __init__(
        self,
        inference: InferenceClient | None = None,
        *,
        timeout: float = 30.0,
        max_images: int = 3,
    ) -> None:
        self._inference = inference
        self.timeout = timeout
        self.max_images = max_images

    async def recognize(self, images: list[bytes]) -> OcrOutcome:
        if self._inference is None:
            return self._placeholder("OCR service is not configured", len(images))
        if not images:
            return self._placeholder("no image content found", 0)

        texts: list[str] = []
        failures: list[str] = []
        processed = 0

        for image in images[: self.max_images]:
            processed += 1
            try:
                text = await asyncio.wait_for(
                    self._inference.image_to_text(image),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                failures.append(f"timed out after {self.timeout}s")
                continue
            except InferenceError as exc:
                failures.append(str(exc))
                continue
            except Exception as exc:
                logger.warning("OCR call raised", error=str(exc), error_type=type(exc).__name__)
                failures.append(f"{type(exc).__name__}: {exc}")
                continue
            if text and text.strip():
                texts.append(text.strip())

        if texts:
            logger.info("OCR recognized text", images=processed, text_length=sum(map(len, texts)))
            return OcrOutcome(text="\n".join(texts), images_processed=processed)

        reason = failures[0] if failures else "no text recognized"
        logger.warning("OCR produced no text", images=processed, reason=reason)
        return self._placeholder(reason, processed)

    @staticmethod
    def _placeholder(reason: str, images: int) -> OcrOutcome:
        text = (
            f"{PLACEHOLDER_PREFIX} Text could not be recognized from the document images "
            f"({reason}). Manual review is required."
        )
        return OcrOutcome(text=text, images_processed=images, placeholder=True, reason=reason)
