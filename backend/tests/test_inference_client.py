"""Tests for the Hugging Face inference client against a mocked transport."""

import json

import httpx
import pytest

from docflow.integrations.inference_client import HuggingFaceInferenceClient
from docflow.pipeline.errors import InferenceError, InferenceUnavailableError


def client_for(handler) -> HuggingFaceInferenceClient:
    return HuggingFaceInferenceClient(
        "hf_test_token",
        base_url="https://inference.test/models",
        transport=httpx.MockTransport(handler),
    )


class TestClassify:

    @pytest.mark.asyncio
    async def test_classic_zero_shot_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "sequence": "...",
                "labels": ["invoice or bill", "purchase receipt"],
                "scores": [0.91, 0.09],
            })

        client = client_for(handler)
        result = await client.classify("Invoice INV-1 total due", ["purchase receipt", "invoice or bill"])
        await client.aclose()

        assert result.top_label == "invoice or bill"
        assert result.top_score == 0.91
        assert result.score_for("purchase receipt") == 0.09
        assert seen["url"] == "https://inference.test/models/facebook/bart-large-mnli"
        assert seen["auth"] == "Bearer hf_test_token"
        assert seen["body"]["parameters"]["candidate_labels"] == ["purchase receipt", "invoice or bill"]

    @pytest.mark.asyncio
    async def test_label_score_list_is_sorted(self):
        def handler(request):
            return httpx.Response(200, json=[
                {"label": "other amount", "score": 0.2},
                {"label": "total amount due", "score": 0.8},
            ])

        client = client_for(handler)
        result = await client.classify("Total: $10", ["total amount due", "other amount"])
        await client.aclose()

        assert result.labels == ["total amount due", "other amount"]

    @pytest.mark.asyncio
    async def test_batched_classic_payload_is_unwrapped(self):
        client = client_for(lambda request: httpx.Response(200, json=[
            {"labels": ["invoice date", "due date"], "scores": [0.7, 0.3]},
        ]))
        result = await client.classify("Date: 2024-05-01", ["due date", "invoice date"])
        await client.aclose()

        assert result.labels == ["invoice date", "due date"]
        assert result.scores == [0.7, 0.3]

    @pytest.mark.asyncio
    async def test_input_is_truncated(self):
        sizes = []

        def handler(request):
            sizes.append(len(json.loads(request.content)["inputs"]))
            return httpx.Response(200, json={"labels": ["a"], "scores": [1.0]})

        client = client_for(handler)
        await client.classify("x" * 10_000, ["a"])
        await client.aclose()

        assert sizes == [2000]

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        client = client_for(lambda request: httpx.Response(200, json={"error": "weird"}))

        with pytest.raises(InferenceError):
            await client.classify("text", ["a"])
        await client.aclose()


class TestTagEntities:

    @pytest.mark.asyncio
    async def test_maps_conll_labels_and_drops_unknown(self):
        def handler(request):
            return httpx.Response(200, json=[
                {"entity_group": "ORG", "word": " Globex Corporation", "score": 0.98, "start": 10, "end": 28},
                {"entity_group": "PER", "word": "Jane Doe", "score": 0.95, "start": 40, "end": 48},
                {"entity_group": "DATE", "word": "March", "score": 0.5, "start": 50, "end": 55},
            ])

        client = client_for(handler)
        entities = await client.tag_entities("...")
        await client.aclose()

        assert [(e.label, e.text) for e in entities] == [("ORG", "Globex Corporation"), ("PERSON", "Jane Doe")]
        assert entities[0].start == 10
        assert entities[0].source == "ai"


class TestImageToText:

    @pytest.mark.asyncio
    async def test_sends_raw_bytes(self):
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = request.content
            return httpx.Response(200, json=[{"generated_text": "TOTAL 4.50"}])

        client = client_for(handler)
        text = await client.image_to_text(b"\x89PNG-bytes")
        await client.aclose()

        assert text == "TOTAL 4.50"
        assert seen["content_type"] == "application/octet-stream"
        assert seen["body"] == b"\x89PNG-bytes"


class TestTransportErrors:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 503])
    async def test_loading_or_rate_limited_model_is_unavailable(self, status_code):
        client = client_for(lambda request: httpx.Response(status_code, json={"error": "Model is loading"}))

        with pytest.raises(InferenceUnavailableError):
            await client.tag_entities("text")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_other_http_errors(self):
        client = client_for(lambda request: httpx.Response(400, text="bad input"))

        with pytest.raises(InferenceError) as exc_info:
            await client.classify("text", ["a"])
        await client.aclose()

        assert not isinstance(exc_info.value, InferenceUnavailableError)

    @pytest.mark.asyncio
    async def test_connection_failure_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = client_for(handler)

        with pytest.raises(InferenceUnavailableError):
            await client.image_to_text(b"img")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = client_for(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(InferenceError, match="non-JSON"):
            await client.classify("text", ["a"])
        await client.aclose()
