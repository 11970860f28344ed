"""Tests for FieldExtractionEngine, strategies and the regex baseline."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from docflow.core.constants import DocumentCategory, ExtractionMethod
from docflow.extraction import patterns
from docflow.extraction.engine import FieldExtractionEngine, classify_by_keywords
from docflow.extraction.entities import merge_entities, pattern_entities
from docflow.extraction.strategies import Candidate, FieldStrategy, ai_strategy, pattern, resolve_field
from docflow.integrations.inference_client import Classification, Entity
from docflow.pipeline.errors import InferenceError, InferenceUnavailableError

CONTRACT_TEXT = """SERVICE AGREEMENT

This Service Agreement is entered into by and between Initech LLC and Umbrella Corp (the "Parties").

Effective Date: January 1, 2024
Expiration Date: December 31, 2025
Contract Value: $48,000.00

Section 1. Payment of fees for services within thirty days of invoice.
Section 2. Either party may terminate with sixty days notice.

This agreement shall be governed by the laws of the State of Delaware.
"""

RECEIPT_TEXT = """Corner Coffee Shop
Date: 06/01/2024

Latte                 4.50
Blueberry Muffin      3.25

Subtotal: 7.75
Tax: 0.62
Total: $8.37
Paid with VISA
"""


class TestPatterns:

    def test_parse_amount(self):
        assert patterns.parse_amount("$1,250.00") == 1250.0
        assert patterns.parse_amount("USD 99") == 99.0
        assert patterns.parse_amount("1.2.3") is None
        assert patterns.parse_amount(None) is None

    def test_invoice_fields(self, sample_invoice_text):
        assert patterns.invoice_number(sample_invoice_text) == "INV-2024-0042"
        assert patterns.labeled_total(sample_invoice_text) == 178.2
        assert patterns.subtotal(sample_invoice_text) == 165.0
        assert patterns.tax(sample_invoice_text) == 13.2
        assert patterns.invoice_date(sample_invoice_text) == "03/15/2024"
        assert patterns.due_date(sample_invoice_text) == "04/14/2024"
        assert patterns.customer_name(sample_invoice_text) == "Globex Corporation"
        assert patterns.currency(sample_invoice_text) == "USD"

    def test_contract_fields(self):
        assert patterns.parties(CONTRACT_TEXT) == ["Initech LLC", "Umbrella Corp"]
        assert patterns.effective_date(CONTRACT_TEXT) == "January 1, 2024"
        assert patterns.contract_value(CONTRACT_TEXT) == 48000.0
        assert patterns.governing_law(CONTRACT_TEXT) == "Delaware"
        assert len(patterns.clauses(CONTRACT_TEXT)) == 2

    def test_receipt_items_skip_totals(self):
        items = patterns.receipt_items(RECEIPT_TEXT)
        assert [i["description"] for i in items] == ["Latte", "Blueberry Muffin"]
        assert patterns.payment_method(RECEIPT_TEXT) == "VISA"


class TestStrategies:

    @pytest.mark.asyncio
    async def test_first_accepted_strategy_wins(self):
        async def low_confidence_ai():
            return Candidate(value="ai-value", confidence=0.4, method=ExtractionMethod.AI)

        result = await resolve_field([
            ai_strategy("ai", low_confidence_ai, threshold=0.65),
            pattern("regex", lambda: "regex-value", confidence=0.75),
        ])

        assert result.value == "regex-value"
        assert result.method == ExtractionMethod.PATTERN
        assert result.strategy == "regex"

    @pytest.mark.asyncio
    async def test_empty_values_are_skipped_and_confidence_clamped(self):
        async def empty():
            return Candidate(value=[], confidence=0.99, method=ExtractionMethod.AI)

        async def overconfident():
            return Candidate(value="x", confidence=3.0, method=ExtractionMethod.AI)

        result = await resolve_field([
            FieldStrategy("empty", empty),
            FieldStrategy("overconfident", overconfident),
        ])

        assert result.strategy == "overconfident"
        assert result.confidence == 1.0

    @pytest.mark.asyncio
    async def test_no_candidate_returns_none(self):
        assert await resolve_field([pattern("nothing", lambda: None, confidence=0.9)]) is None


class TestEntities:

    def test_pattern_entities(self, sample_invoice_text):
        labels = {e.label for e in pattern_entities(sample_invoice_text)}
        assert {"MONEY", "DATE", "EMAIL", "ORG"} <= labels

    def test_merge_keeps_higher_score_on_overlap(self):
        ai = [Entity(label="ORG", text="Globex Corporation", score=0.97, start=10, end=28)]
        regex = [Entity(label="ORG", text="Globex Corporation", score=0.7, start=10, end=28, source="pattern")]

        merged = merge_entities(ai, regex)

        assert len(merged) == 1
        assert merged[0].source == "ai"


class TestFieldExtractionEngine:

    @pytest.mark.asyncio
    async def test_pattern_only_invoice_without_ai(self, sample_invoice_text):
        engine = FieldExtractionEngine(None, threshold=0.65, timeout=1.0)

        result = await engine.extract(sample_invoice_text, "invoice")
        values = result.values()

        assert result.category == DocumentCategory.INVOICE
        assert result.extraction_method == ExtractionMethod.PATTERN
        assert values["invoice_number"] == "INV-2024-0042"
        assert values["total_amount"] == 178.2
        assert values["subtotal"] == 165.0
        assert values["tax"] == 13.2
        assert values["invoice_date"] == "03/15/2024"
        assert values["due_date"] == "04/14/2024"
        assert values["payment_terms"] == "Net 30"
        assert result.total_fields == 10
        assert result.coverage == round(result.fields_found / 10, 4)
        assert all(0.0 <= f.confidence <= 1.0 for f in result.fields.values())

    @pytest.mark.asyncio
    async def test_unknown_category_uses_general_extractor(self, sample_invoice_text):
        engine = FieldExtractionEngine(None)

        result = await engine.extract(sample_invoice_text, "spreadsheet")

        assert result.category == DocumentCategory.GENERAL
        assert result.values()["title"] == "ACME Supplies Ltd"
        assert "billing@acme-supplies.example" in result.values()["emails"]

    @pytest.mark.asyncio
    async def test_missing_category_is_classified_by_keywords(self):
        engine = FieldExtractionEngine(None)

        result = await engine.extract(CONTRACT_TEXT)

        assert result.category == DocumentCategory.CONTRACT
        assert result.values()["parties"] == ["Initech LLC", "Umbrella Corp"]
        assert result.values()["contract_type"] == "service agreement"

    @pytest.mark.asyncio
    async def test_ai_money_role_overrides_labeled_pattern(self, sample_invoice_text):
        inference = AsyncMock()

        async def classify(text, labels):
            # Money contexts are centered on the entity: 50 chars either side
            if "total amount due" in labels and text[50:].startswith("$178.20"):
                return Classification(labels=["total amount due", "other amount"], scores=[0.93, 0.07])
            return Classification(labels=[labels[-1], labels[0]], scores=[0.9, 0.1])

        inference.classify.side_effect = classify
        inference.tag_entities.return_value = [
            Entity(label="ORG", text="ACME Supplies Ltd", score=0.96, start=0, end=17),
        ]
        engine = FieldExtractionEngine(inference, threshold=0.65, timeout=1.0)

        result = await engine.extract(sample_invoice_text, "invoice")

        total = result.fields["total_amount"]
        assert total.method == ExtractionMethod.AI
        assert total.value == 178.2
        assert result.fields["vendor_name"].value == "ACME Supplies Ltd"
        assert result.fields["vendor_name"].method == ExtractionMethod.AI
        assert result.extraction_method == ExtractionMethod.HYBRID

    @pytest.mark.asyncio
    async def test_unavailable_inference_degrades_to_patterns(self, sample_invoice_text):
        inference = AsyncMock()
        inference.classify.side_effect = InferenceUnavailableError("model loading")
        inference.tag_entities.side_effect = InferenceUnavailableError("model loading")
        engine = FieldExtractionEngine(inference, threshold=0.65, timeout=1.0)

        result = await engine.extract(sample_invoice_text, "invoice")

        assert result.extraction_method == ExtractionMethod.PATTERN
        assert result.values()["total_amount"] == 178.2
        # The first failure disables the AI layer for the rest of the extraction
        assert inference.tag_entities.await_count == 1
        assert inference.classify.await_count == 0

    @pytest.mark.asyncio
    async def test_slow_inference_times_out(self, sample_invoice_text):
        inference = AsyncMock()

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        inference.tag_entities.side_effect = hang
        inference.classify.side_effect = hang
        engine = FieldExtractionEngine(inference, threshold=0.65, timeout=0.05)

        result = await engine.extract(sample_invoice_text, "invoice")

        assert result.values()["invoice_number"] == "INV-2024-0042"
        assert result.extraction_method == ExtractionMethod.PATTERN

    @pytest.mark.asyncio
    async def test_unexpected_client_error_degrades_to_patterns(self, sample_invoice_text):
        inference = AsyncMock()
        inference.classify.side_effect = ConnectionError("inference host unreachable")
        inference.tag_entities.side_effect = ConnectionError("inference host unreachable")
        engine = FieldExtractionEngine(inference, threshold=0.65, timeout=1.0)

        result = await engine.extract(sample_invoice_text, "invoice")

        assert result.extraction_method == ExtractionMethod.PATTERN
        assert result.values()["total_amount"] == 178.2
        assert result.values()["invoice_number"] == "INV-2024-0042"
        assert inference.tag_entities.await_count == 1
        assert inference.classify.await_count == 0

    @pytest.mark.asyncio
    async def test_bad_inference_payload_is_not_fatal(self, sample_invoice_text):
        inference = AsyncMock()
        inference.classify.side_effect = InferenceError("Unexpected zero-shot response")
        inference.tag_entities.return_value = []
        engine = FieldExtractionEngine(inference, threshold=0.65, timeout=1.0)

        result = await engine.extract(sample_invoice_text, "invoice")

        assert result.values()["total_amount"] == 178.2


class TestKeywordClassification:

    def test_keyword_hits_raise_confidence(self, sample_invoice_text):
        category, confidence = classify_by_keywords(sample_invoice_text)
        assert category == DocumentCategory.INVOICE
        assert 0.5 <= confidence <= 0.8

    def test_no_keywords_falls_back_to_general(self):
        assert classify_by_keywords("lorem ipsum dolor sit amet") == (DocumentCategory.GENERAL, 0.3)
