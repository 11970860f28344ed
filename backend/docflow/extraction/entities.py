"""
Entity tagging — AI NER merged with pattern entities.

The NER model covers ORG / PERSON / LOCATION; money, dates, emails and
phone numbers always come from patterns.  When both layers tag the same
span with the same label the higher score wins.
"""

from __future__ import annotations

import re

from docflow.extraction.ai import AiAnalyzer
from docflow.extraction.patterns import DATE, EMAIL, MONEY, PHONE
from docflow.integrations.inference_client import Entity

_ORG = re.compile(
    r"\b[A-Z][A-Za-z0-9&'.\-]*(?:\s+[A-Z][A-Za-z0-9&'.\-]*)*\s+"
    r"(?:Inc|Corp|LLC|Ltd|Co|Company|Corporation|Group|Enterprises|Solutions|Systems|Technologies|Services)\b\.?"
)
_PERSON = re.compile(r"\b(?:Mr|Mrs|Ms|Dr)\.?\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?\b")

PATTERN_ENTITIES: tuple[tuple[re.Pattern, str, float], ...] = (
    (MONEY, "MONEY", 0.8),
    (DATE, "DATE", 0.75),
    (EMAIL, "EMAIL", 0.9),
    (PHONE, "PHONE", 0.8),
    (_ORG, "ORG", 0.7),
    (_PERSON, "PERSON", 0.6),
)


def pattern_entities(text: str) -> list[Entity]:
    entities: list[Entity] = []
    for regex, label, score in PATTERN_ENTITIES:
        for match in regex.finditer(text):
            value = match.group(0).strip()
            if value:
                entities.append(Entity(
                    label=label,
                    text=value,
                    score=score,
                    start=match.start(),
                    end=match.end(),
                    source="pattern",
                ))
    return entities


def _overlaps(a: Entity, b: Entity) -> bool:
    return a.label == b.label and a.start < b.end and b.start < a.end


def merge_entities(*layers: list[Entity]) -> list[Entity]:
    """Union of entity layers; overlapping same-label spans keep the higher score."""
    merged: list[Entity] = []
    for entity in (e for layer in layers for e in layer):
        clash = next((m for m in merged if _overlaps(m, entity)), None)
        if clash is None:
            merged.append(entity)
        elif entity.score > clash.score:
            merged[merged.index(clash)] = entity
    return sorted(merged, key=lambda e: (e.start, e.label))


async def tag_entities(text: str, ai: AiAnalyzer) -> list[Entity]:
    ai_entities = await ai.tag_entities(text)
    return merge_entities(ai_entities, pattern_entities(text))
