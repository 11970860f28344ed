"""
AiAnalyzer — time-bounded, failure-absorbing view of the inference client.

Built fresh for each extraction.  The first timeout or unavailability
switches it off for the rest of that extraction so one dead service
costs one timeout, not one per field.  Methods return None / [] instead
of raising.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from docflow.core.logging import get_logger
from docflow.integrations.inference_client import Classification, Entity, InferenceClient
from docflow.pipeline.errors import InferenceError, InferenceUnavailableError

logger = get_logger(__name__)


class AiAnalyzer:
    def __init__(self, inference: InferenceClient | None, *, timeout: float = 30.0) -> None:
        self._inference = inference
        self.timeout = timeout
        self.disabled = inference is None
        self.calls = 0
        self.failures = 0

    @property
    def available(self) -> bool:
        return not self.disabled

    async def classify(self, text: str, labels: Sequence[str]) -> Classification | None:
        if self.disabled or not text.strip():
            return None
        result = await self._call("classify", self._inference.classify, text, list(labels))
        if result is None or not result.labels:
            return None
        return result

    async def tag_entities(self, text: str) -> list[Entity]:
        if self.disabled or not text.strip():
            return []
        result = await self._call("tag_entities", self._inference.tag_entities, text)
        return result or []

    async def _call(self, operation: str, func, *args):
        self.calls += 1
        try:
            return await asyncio.wait_for(func(*args), timeout=self.timeout)
        except asyncio.TimeoutError:
            self._disable(operation, f"timed out after {self.timeout}s")
        except InferenceUnavailableError as exc:
            self._disable(operation, str(exc))
        except InferenceError as exc:
            self.failures += 1
            logger.warning("Inference call failed, using pattern fallback", operation=operation, error=str(exc))
        except Exception as exc:
            # Anything else from a client means it cannot be trusted for this extraction
            self._disable(operation, f"{type(exc).__name__}: {exc}")
        return None

    def _disable(self, operation: str, reason: str) -> None:
        self.failures += 1
        self.disabled = True
        logger.warning("Inference unavailable, AI layer disabled for this extraction", operation=operation, reason=reason)
