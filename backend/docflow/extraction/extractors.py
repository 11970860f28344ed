"""
Category-specific field extractors.

Each extractor maps field names to an ordered strategy chain (see
strategies.resolve_field).  AI strategies come first and only win above
the confidence threshold; the regex baseline always follows.

Three layers feed the strategies through AnalysisInput:
    - segment roles: zero-shot classification of text segments
      (header, billing info, totals, payment terms, ...)
    - entities: AI NER merged with pattern entities
    - regex baseline: docflow.extraction.patterns
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from docflow.core.constants import DocumentCategory, ExtractionMethod
from docflow.extraction import patterns
from docflow.extraction.ai import AiAnalyzer
from docflow.extraction.strategies import Candidate, FieldStrategy, ai_strategy, pattern
from docflow.integrations.inference_client import Classification, Entity

MONEY_CONTEXT_CHARS = 50
DATE_CONTEXT_CHARS = 30
MAX_AI_CANDIDATES = 8
MAX_SEGMENTS = 12
KEY_TERM_THRESHOLD = 0.8

MONEY_ROLES = {
    "total": "total amount due",
    "subtotal": "subtotal before tax",
    "tax": "tax amount",
    "discount": "discount",
    "other": "other amount",
}

SEGMENT_ROLES = {
    "header": "company header and contact details",
    "billing": "billing or customer information",
    "line_items": "list of purchased items",
    "totals": "totals and amounts",
    "payment_terms": "payment terms and instructions",
    "footer": "footer notes",
}

CONTRACT_TYPES = [
    "service agreement",
    "non-disclosure agreement",
    "employment contract",
    "lease agreement",
    "sales contract",
    "partnership agreement",
    "license agreement",
]

_CONTRACT_TYPE_KEYWORDS = {
    "non-disclosure agreement": ("non-disclosure", "confidential information", "nda"),
    "employment contract": ("employee", "employer", "salary", "employment"),
    "lease agreement": ("lease", "landlord", "tenant", "premises"),
    "sales contract": ("purchase price", "buyer", "seller", "goods"),
    "partnership agreement": ("partnership", "partners", "profit sharing"),
    "license agreement": ("license", "licensor", "licensee"),
    "service agreement": ("services", "service provider", "statement of work"),
}

KEY_TERM_TOPICS = [
    "payment obligations",
    "termination",
    "confidentiality",
    "liability and indemnification",
    "governing law",
    "other",
]

TOPICS = ["finance", "legal", "technology", "healthcare", "human resources", "operations", "sales"]

_SEGMENT_SPLIT = re.compile(r"\n\s*\n")


def _context(text: str, entity: Entity, radius: int) -> str:
    return text[max(0, entity.start - radius): entity.end + radius]


@dataclass
class AnalysisInput:
    """Everything a strategy chain may consult, with per-extraction AI caches."""

    text: str
    entities: list[Entity]
    ai: AiAnalyzer
    threshold: float
    _money_roles: dict[int, Classification | None] = field(default_factory=dict)
    _date_roles: dict[tuple[int, str], Classification | None] = field(default_factory=dict)
    _segments: list[tuple[str, Classification]] | None = None

    def entities_of(self, label: str, *, source: str | None = None) -> list[Entity]:
        return [e for e in self.entities if e.label == label and (source is None or e.source == source)]

    # ── Money disambiguation ────────────────────────────

    async def money_by_role(self, role: str) -> Candidate | None:
        """Highest-scoring money entity whose context classifies as `role`."""
        wanted = MONEY_ROLES[role]
        best: tuple[float, Entity] | None = None
        for index, entity in enumerate(self.entities_of("MONEY")[:MAX_AI_CANDIDATES]):
            if index not in self._money_roles:
                if not self.ai.available:
                    break
                self._money_roles[index] = await self.ai.classify(
                    _context(self.text, entity, MONEY_CONTEXT_CHARS), list(MONEY_ROLES.values())
                )
            result = self._money_roles[index]
            if result is not None and result.top_label == wanted:
                if best is None or result.top_score > best[0]:
                    best = (result.top_score, entity)
        if best is None:
            return None
        amount = patterns.parse_amount(best[1].text)
        if amount is None:
            return None
        return Candidate(value=amount, confidence=best[0], method=ExtractionMethod.AI)

    # ── Date disambiguation ─────────────────────────────

    async def date_by_role(self, role: str) -> Candidate | None:
        """Date entity whose context best matches `role` (e.g. "invoice date")."""
        labels = [role, "other date"]
        best: tuple[float, Entity] | None = None
        for index, entity in enumerate(self.entities_of("DATE")[:MAX_AI_CANDIDATES]):
            key = (index, role)
            if key not in self._date_roles:
                if not self.ai.available:
                    break
                self._date_roles[key] = await self.ai.classify(
                    _context(self.text, entity, DATE_CONTEXT_CHARS), labels
                )
            result = self._date_roles[key]
            if result is not None and result.top_label == role:
                if best is None or result.top_score > best[0]:
                    best = (result.top_score, entity)
        if best is None:
            return None
        return Candidate(value=best[1].text, confidence=best[0], method=ExtractionMethod.AI)

    # ── Segment roles ───────────────────────────────────

    async def segments(self) -> list[tuple[str, Classification]]:
        if self._segments is None:
            self._segments = []
            chunks = [c.strip() for c in _SEGMENT_SPLIT.split(self.text) if c.strip()]
            if len(chunks) <= 1:
                chunks = [line.strip() for line in self.text.splitlines() if line.strip()]
            for chunk in chunks[:MAX_SEGMENTS]:
                result = await self.ai.classify(chunk, list(SEGMENT_ROLES.values()))
                if result is None:
                    if not self.ai.available:
                        break
                    continue
                self._segments.append((chunk, result))
        return self._segments

    async def segment_for(self, role: str) -> Candidate | None:
        wanted = SEGMENT_ROLES[role]
        best: tuple[float, str] | None = None
        for chunk, result in await self.segments():
            if result.top_label == wanted and (best is None or result.top_score > best[0]):
                best = (result.top_score, chunk)
        if best is None:
            return None
        return Candidate(value=best[1], confidence=best[0], method=ExtractionMethod.AI)

    # ── Entities ────────────────────────────────────────

    def ai_entity(self, label: str) -> Candidate | None:
        found = self.entities_of(label, source="ai")
        if not found:
            return None
        top = max(found, key=lambda e: e.score)
        return Candidate(value=top.text, confidence=top.score, method=ExtractionMethod.AI)

    def ai_entity_list(self, *labels: str, limit: int = 6) -> Candidate | None:
        found = [e for label in labels for e in self.entities_of(label, source="ai")]
        values: list[str] = []
        for entity in sorted(found, key=lambda e: e.start):
            if entity.text and entity.text not in values:
                values.append(entity.text)
        if not values:
            return None
        confidence = sum(e.score for e in found) / len(found)
        return Candidate(value=values[:limit], confidence=confidence, method=ExtractionMethod.AI)

    def pattern_entity_list(self, label: str, limit: int = 6) -> list[str]:
        values: list[str] = []
        for entity in self.entities_of(label, source="pattern"):
            if entity.text not in values:
                values.append(entity.text)
        return values[:limit]


# ── Strategy builders ────────────────────────────────────

def _first_line(candidate: Candidate | None) -> Candidate | None:
    if candidate is None:
        return None
    line = next((ln.strip() for ln in str(candidate.value).splitlines() if ln.strip()), None)
    if line is None:
        return None
    return Candidate(value=line[:120], confidence=candidate.confidence, method=candidate.method)


def money_chain(inp: AnalysisInput, role: str, labeled, *, with_max: bool = False) -> list[FieldStrategy]:
    async def ai_money() -> Candidate | None:
        return await inp.money_by_role(role)

    chain = [
        ai_strategy(f"ai_money_{role}", ai_money, threshold=inp.threshold),
        pattern(f"labeled_{role}", lambda: labeled(inp.text), confidence=0.75),
    ]
    if with_max:
        chain.append(pattern("max_amount", lambda: patterns.max_amount(inp.text), confidence=0.5))
    return chain


def date_chain(inp: AnalysisInput, role: str, labeled, *, with_first: bool = False) -> list[FieldStrategy]:
    async def ai_date() -> Candidate | None:
        return await inp.date_by_role(role)

    chain = [
        ai_strategy(f"ai_date_{role.replace(' ', '_')}", ai_date, threshold=inp.threshold),
        pattern(f"labeled_{role.replace(' ', '_')}", lambda: labeled(inp.text), confidence=0.75),
    ]
    if with_first:
        chain.append(pattern("first_date", lambda: patterns.first_date(inp.text), confidence=0.5))
    return chain


def _ai(name: str, inp: AnalysisInput, run) -> FieldStrategy:
    return ai_strategy(name, run, threshold=inp.threshold)


# ── Extractors ───────────────────────────────────────────

class CategoryExtractor(ABC):
    """Field strategy chains for one document category."""

    category: DocumentCategory

    @abstractmethod
    def strategies(self, inp: AnalysisInput) -> dict[str, list[FieldStrategy]]:
        ...


class InvoiceExtractor(CategoryExtractor):
    category = DocumentCategory.INVOICE

    def strategies(self, inp: AnalysisInput) -> dict[str, list[FieldStrategy]]:
        async def header_vendor():
            return _first_line(await inp.segment_for("header"))

        async def billing_customer():
            return _first_line(await inp.segment_for("billing"))

        async def terms_segment():
            return await inp.segment_for("payment_terms")

        async def ai_org():
            return inp.ai_entity("ORG")

        return {
            "invoice_number": [
                pattern("labeled_invoice_number", lambda: patterns.invoice_number(inp.text), confidence=0.85),
            ],
            "invoice_date": date_chain(inp, "invoice date", patterns.invoice_date, with_first=True),
            "due_date": date_chain(inp, "due date", patterns.due_date),
            "total_amount": money_chain(inp, "total", patterns.labeled_total, with_max=True),
            "subtotal": money_chain(inp, "subtotal", patterns.subtotal),
            "tax": money_chain(inp, "tax", patterns.tax),
            "currency": [pattern("currency_symbol", lambda: patterns.currency(inp.text), confidence=0.7)],
            "vendor_name": [
                _ai("ai_org_entity", inp, ai_org),
                _ai("ai_header_segment", inp, header_vendor),
                pattern("from_line", lambda: patterns.vendor_name(inp.text), confidence=0.75),
                pattern("pattern_org", lambda: next(iter(inp.pattern_entity_list("ORG")), None), confidence=0.5),
            ],
            "customer_name": [
                _ai("ai_billing_segment", inp, billing_customer),
                pattern("bill_to_line", lambda: patterns.customer_name(inp.text), confidence=0.75),
            ],
            "payment_terms": [
                _ai("ai_terms_segment", inp, terms_segment),
                pattern("labeled_terms", lambda: patterns.payment_terms(inp.text), confidence=0.7),
            ],
        }


class ContractExtractor(CategoryExtractor):
    category = DocumentCategory.CONTRACT

    def strategies(self, inp: AnalysisInput) -> dict[str, list[FieldStrategy]]:
        async def ai_contract_type():
            result = await inp.ai.classify(inp.text[:1500], CONTRACT_TYPES)
            if result is None:
                return None
            return Candidate(value=result.top_label, confidence=result.top_score, method=ExtractionMethod.AI)

        async def ai_parties():
            return inp.ai_entity_list("ORG", "PERSON", limit=4)

        async def ai_key_terms():
            clauses = patterns.clauses(inp.text)
            terms = []
            scores = []
            for clause in clauses[:MAX_AI_CANDIDATES]:
                result = await inp.ai.classify(clause, KEY_TERM_TOPICS)
                if result is None:
                    if not inp.ai.available:
                        break
                    continue
                if result.top_label != "other" and result.top_score >= KEY_TERM_THRESHOLD:
                    terms.append({"clause": clause, "topic": result.top_label})
                    scores.append(result.top_score)
            if not terms:
                return None
            return Candidate(value=terms, confidence=sum(scores) / len(scores), method=ExtractionMethod.AI)

        return {
            "contract_type": [
                _ai("ai_contract_type", inp, ai_contract_type),
                pattern("contract_type_keywords", lambda: _contract_type_by_keywords(inp.text), confidence=0.6),
            ],
            "parties": [
                _ai("ai_party_entities", inp, ai_parties),
                pattern("between_clause", lambda: patterns.parties(inp.text), confidence=0.75),
            ],
            "effective_date": date_chain(inp, "effective date", patterns.effective_date, with_first=True),
            "expiration_date": date_chain(inp, "expiration date", patterns.expiration_date),
            "contract_value": money_chain(inp, "total", patterns.contract_value),
            "governing_law": [
                pattern("governing_law_clause", lambda: patterns.governing_law(inp.text), confidence=0.75),
            ],
            "key_terms": [
                _ai("ai_key_terms", inp, ai_key_terms),
                pattern("numbered_clauses", lambda: patterns.clauses(inp.text), confidence=0.6),
            ],
        }


class ReceiptExtractor(CategoryExtractor):
    category = DocumentCategory.RECEIPT

    def strategies(self, inp: AnalysisInput) -> dict[str, list[FieldStrategy]]:
        async def ai_merchant():
            return inp.ai_entity("ORG")

        return {
            "merchant_name": [
                _ai("ai_org_entity", inp, ai_merchant),
                pattern("first_line", lambda: patterns.title(inp.text), confidence=0.5),
            ],
            "transaction_date": date_chain(inp, "purchase date", patterns.invoice_date, with_first=True),
            "total_amount": money_chain(inp, "total", patterns.labeled_total, with_max=True),
            "tax": money_chain(inp, "tax", patterns.tax),
            "payment_method": [pattern("card_keywords", lambda: patterns.payment_method(inp.text), confidence=0.7)],
            "currency": [pattern("currency_symbol", lambda: patterns.currency(inp.text), confidence=0.7)],
            "items": [pattern("priced_lines", lambda: patterns.receipt_items(inp.text), confidence=0.6)],
        }


class GeneralExtractor(CategoryExtractor):
    category = DocumentCategory.GENERAL

    def strategies(self, inp: AnalysisInput) -> dict[str, list[FieldStrategy]]:
        async def ai_topics():
            result = await inp.ai.classify(inp.text[:1500], TOPICS)
            if result is None:
                return None
            return Candidate(value=[result.top_label], confidence=result.top_score, method=ExtractionMethod.AI)

        async def ai_orgs():
            return inp.ai_entity_list("ORG")

        async def ai_people():
            return inp.ai_entity_list("PERSON")

        return {
            "title": [pattern("first_line", lambda: patterns.title(inp.text), confidence=0.6)],
            "summary": [pattern("leading_sentences", lambda: patterns.summary(inp.text), confidence=0.5)],
            "document_date": date_chain(inp, "document date", patterns.invoice_date, with_first=True),
            "topics": [_ai("ai_topics", inp, ai_topics)],
            "organizations": [
                _ai("ai_org_entities", inp, ai_orgs),
                pattern("pattern_orgs", lambda: inp.pattern_entity_list("ORG"), confidence=0.6),
            ],
            "people": [
                _ai("ai_person_entities", inp, ai_people),
                pattern("pattern_people", lambda: inp.pattern_entity_list("PERSON"), confidence=0.5),
            ],
            "emails": [pattern("email_pattern", lambda: patterns.emails(inp.text), confidence=0.9)],
            "phone_numbers": [pattern("phone_pattern", lambda: patterns.phone_numbers(inp.text), confidence=0.8)],
        }


def _contract_type_by_keywords(text: str) -> str | None:
    lowered = text.lower()
    best, hits = None, 0
    for contract_type, keywords in _CONTRACT_TYPE_KEYWORDS.items():
        count = sum(lowered.count(k) for k in keywords)
        if count > hits:
            best, hits = contract_type, count
    return best


_EXTRACTORS: dict[DocumentCategory, CategoryExtractor] = {
    DocumentCategory.INVOICE: InvoiceExtractor(),
    DocumentCategory.CONTRACT: ContractExtractor(),
    DocumentCategory.LEGAL: ContractExtractor(),
    DocumentCategory.RECEIPT: ReceiptExtractor(),
}
_GENERAL = GeneralExtractor()


def extractor_for(category: DocumentCategory) -> CategoryExtractor:
    return _EXTRACTORS.get(category, _GENERAL)
