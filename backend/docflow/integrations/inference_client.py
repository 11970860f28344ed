"""
Inference service client.

The engine only depends on the `InferenceClient` protocol:

    classify(text, labels)  -> Classification(labels, scores)   # zero-shot
    tag_entities(text)      -> list[Entity]                      # NER
    image_to_text(image)    -> str                               # OCR

`HuggingFaceInferenceClient` implements it against the Hugging Face
Inference API over httpx.  One instance is built per process (see
docflow.runtime) and passed by reference to the components that need it.
Every call is fallible and slow; callers bound them with asyncio.wait_for
and fall back on InferenceError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import httpx

from docflow.core.logging import get_logger
from docflow.core.tracing import traceable_step
from docflow.pipeline.errors import InferenceError, InferenceUnavailableError

logger = get_logger(__name__)

# NER models emit CoNLL tags; the extraction layer speaks these names
_ENTITY_LABELS = {
    "PER": "PERSON",
    "PERSON": "PERSON",
    "ORG": "ORG",
    "LOC": "LOCATION",
    "MISC": "MISC",
}


@dataclass
class Classification:
    """Zero-shot result: labels sorted by descending score."""

    labels: list[str] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)

    @property
    def top_label(self) -> str | None:
        return self.labels[0] if self.labels else None

    @property
    def top_score(self) -> float:
        return self.scores[0] if self.scores else 0.0

    def score_for(self, label: str) -> float:
        for candidate, score in zip(self.labels, self.scores):
            if candidate == label:
                return score
        return 0.0


@dataclass
class Entity:
    """A tagged span of text."""

    label: str
    text: str
    score: float
    start: int
    end: int
    source: str = "ai"

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "text": self.text,
            "score": round(self.score, 4),
            "start": self.start,
            "end": self.end,
            "source": self.source,
        }


class InferenceClient(Protocol):
    async def classify(self, text: str, labels: Sequence[str]) -> Classification: ...

    async def tag_entities(self, text: str) -> list[Entity]: ...

    async def image_to_text(self, image: bytes) -> str: ...


class HuggingFaceInferenceClient:
    """Hugging Face Inference API (serverless) client."""

    def __init__(
        self,
        api_token: str,
        *,
        base_url: str = "https://api-inference.huggingface.co/models",
        zero_shot_model: str = "facebook/bart-large-mnli",
        ner_model: str = "dslim/bert-base-NER",
        ocr_model: str = "microsoft/trocr-base-printed",
        timeout: float = 30.0,
        max_input_chars: int = 2000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.zero_shot_model = zero_shot_model
        self.ner_model = ner_model
        self.ocr_model = ocr_model
        self.max_input_chars = max_input_chars
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Public API ───────────────────────────────────────

    @traceable_step(name="hf_zero_shot", run_type="llm")
    async def classify(self, text: str, labels: Sequence[str]) -> Classification:
        payload = {
            "inputs": text[: self.max_input_chars],
            "parameters": {"candidate_labels": list(labels), "multi_label": False},
        }
        data = await self._post(self.zero_shot_model, json=payload)
        # Batched classic format: [{"labels": [...], "scores": [...]}]
        if isinstance(data, list) and data and isinstance(data[0], dict) and "labels" in data[0]:
            data = data[0]
        if isinstance(data, dict) and "labels" in data and "scores" in data:
            return Classification(
                labels=[str(label) for label in data["labels"]],
                scores=[float(score) for score in data["scores"]],
            )
        # Newer router format: [{"label": ..., "score": ...}, ...]
        if isinstance(data, list) or (isinstance(data, dict) and "label" in data):
            items = data if isinstance(data, list) else [data]
            pairs = sorted(
                ((str(i["label"]), float(i["score"])) for i in items if "label" in i),
                key=lambda p: p[1],
                reverse=True,
            )
            return Classification(labels=[p[0] for p in pairs], scores=[p[1] for p in pairs])
        raise InferenceError("Unexpected zero-shot response", details={"response": str(data)[:200]})

    @traceable_step(name="hf_token_classification", run_type="llm")
    async def tag_entities(self, text: str) -> list[Entity]:
        payload = {
            "inputs": text[: self.max_input_chars],
            "parameters": {"aggregation_strategy": "simple"},
        }
        data = await self._post(self.ner_model, json=payload)
        if not isinstance(data, list):
            raise InferenceError("Unexpected NER response", details={"response": str(data)[:200]})

        entities: list[Entity] = []
        for item in data:
            raw_label = str(item.get("entity_group") or item.get("entity") or "")
            label = _ENTITY_LABELS.get(raw_label.removeprefix("B-").removeprefix("I-"))
            if label is None:
                continue
            entities.append(Entity(
                label=label,
                text=str(item.get("word", "")).strip(),
                score=float(item.get("score", 0.0)),
                start=int(item.get("start") or 0),
                end=int(item.get("end") or 0),
            ))
        return entities

    @traceable_step(name="hf_image_to_text", run_type="llm")
    async def image_to_text(self, image: bytes) -> str:
        data = await self._post(
            self.ocr_model,
            content=image,
            headers={"Content-Type": "application/octet-stream"},
        )
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return str(data[0].get("generated_text", ""))
        if isinstance(data, dict) and "generated_text" in data:
            return str(data["generated_text"])
        raise InferenceError("Unexpected image-to-text response", details={"response": str(data)[:200]})

    # ── Transport ────────────────────────────────────────

    async def _post(self, model: str, **kwargs) -> Any:
        try:
            response = await self._client.post(model, **kwargs)
        except httpx.TimeoutException as exc:
            raise InferenceUnavailableError(f"Inference request to {model} timed out") from exc
        except httpx.HTTPError as exc:
            raise InferenceUnavailableError(f"Inference request to {model} failed: {exc}") from exc

        if response.status_code in (429, 503):
            # 503 while the model is loading, 429 when rate-limited
            raise InferenceUnavailableError(
                f"Inference model {model} unavailable ({response.status_code})",
                details={"body": response.text[:200]},
            )
        if response.status_code >= 400:
            raise InferenceError(
                f"Inference model {model} returned {response.status_code}",
                details={"body": response.text[:200]},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise InferenceError(f"Inference model {model} returned non-JSON body") from exc
