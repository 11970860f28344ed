"""
Ordered-strategy combinator for field extraction.

Each field is a list of strategies tried in order; each yields an
optional Candidate(value, confidence, method).  The first candidate
whose confidence clears that strategy's threshold wins:

    total = await resolve_field([
        ai_strategy("ai_money", classify_money, threshold=0.65),
        pattern("labeled_total", lambda: match_total(text), confidence=0.75),
        pattern("max_amount", lambda: max_amount(text), confidence=0.5),
    ])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from docflow.core.constants import ExtractionMethod


@dataclass(frozen=True)
class Candidate:
    value: Any
    confidence: float
    method: ExtractionMethod


@dataclass(frozen=True)
class FieldStrategy:
    name: str
    run: Callable[[], Awaitable[Candidate | None]]
    min_confidence: float = 0.0


@dataclass
class ExtractedField:
    """A resolved field value with its provenance."""

    value: Any
    confidence: float
    method: ExtractionMethod
    strategy: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "confidence": round(self.confidence, 4),
            "method": self.method,
            "strategy": self.strategy,
        }


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict, tuple)) and len(value) == 0)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


async def resolve_field(strategies: Sequence[FieldStrategy]) -> ExtractedField | None:
    """Return the first candidate clearing its strategy's threshold, or None."""
    for strategy in strategies:
        candidate = await strategy.run()
        if candidate is None or _is_empty(candidate.value):
            continue
        confidence = _clamp(candidate.confidence)
        if confidence >= strategy.min_confidence:
            return ExtractedField(
                value=candidate.value,
                confidence=confidence,
                method=candidate.method,
                strategy=strategy.name,
            )
    return None


def pattern(name: str, extract: Callable[[], Any], *, confidence: float) -> FieldStrategy:
    """Wrap a synchronous regex/heuristic extractor; always accepted when it finds a value."""

    async def run() -> Candidate | None:
        value = extract()
        if _is_empty(value):
            return None
        return Candidate(value=value, confidence=confidence, method=ExtractionMethod.PATTERN)

    return FieldStrategy(name=name, run=run, min_confidence=0.0)


def ai_strategy(
    name: str,
    run: Callable[[], Awaitable[Candidate | None]],
    *,
    threshold: float,
) -> FieldStrategy:
    """An AI-backed strategy that only wins when its confidence clears `threshold`."""
    return FieldStrategy(name=name, run=run, min_confidence=threshold)
