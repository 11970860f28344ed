"""
Regex baseline — field extraction with no external dependency.

Every function takes the document text and returns a value or None.
"""

from __future__ import annotations

import re

_AMOUNT = r"([\d][\d,]*(?:\.\d+)?)"
_CURRENCY_PREFIX = r"(?:USD|EUR|GBP|INR)?\s*[$€£₹]?\s*"
_MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"

DATE_RE = (
    rf"(?:\d{{1,2}}[/\-.]\d{{1,2}}[/\-.]\d{{2,4}}"
    rf"|\d{{4}}-\d{{2}}-\d{{2}}"
    rf"|{_MONTHS}\s+\d{{1,2}},?\s+\d{{4}}"
    rf"|\d{{1,2}}\s+{_MONTHS}\s+\d{{4}})"
)
DATE = re.compile(rf"\b{DATE_RE}", re.IGNORECASE)

MONEY = re.compile(
    r"(?:[$€£₹]\s?\d[\d,]*(?:\.\d{1,2})?"
    r"|\b(?:USD|EUR|GBP|INR)\s?\d[\d,]*(?:\.\d{1,2})?"
    r"|\b\d[\d,]*\.\d{2}\b(?:\s?(?:USD|EUR|GBP|INR)\b)?)"
)

INVOICE_NUMBER = (
    re.compile(r"Invoice\s+(?:No|Number|Num)\b\.?\s*[:#]?\s*([A-Z0-9][A-Z0-9\-/]*)", re.IGNORECASE),
    re.compile(r"INVOICE\s*#?\s*:?\s*([A-Z0-9\-]*\d[A-Z0-9\-]*)", re.IGNORECASE),
    re.compile(r"\bINV[\s#\-]*(\d[A-Z0-9\-]*)", re.IGNORECASE),
)

TOTAL = (
    re.compile(rf"(?<![A-Za-z])(?:Grand\s+)?Total(?:\s+Due|\s+Amount)?\s*:?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"Balance\s+Due\s*:?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"Amount(?:\s+(?:Due|Paid))?\s*:?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE),
)
SUBTOTAL = re.compile(rf"Sub\s*-?\s*total\s*:?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE)
TAX = re.compile(rf"(?<![A-Za-z])(?:Tax|VAT|GST)(?:\s*\([^)]*\))?\s*:?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE)
DISCOUNT = re.compile(rf"Discount(?:\s*\([^)]*\))?\s*:?\s*-?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE)

INVOICE_DATE = (
    re.compile(rf"(?:Invoice\s+Date|Date\s+of\s+Issue|Issue\s+Date|Issued)\s*:?\s*({DATE_RE})", re.IGNORECASE),
    re.compile(rf"(?<!Due\s)(?<!Payment\s)\bDate\s*:?\s*({DATE_RE})", re.IGNORECASE),
)
DUE_DATE = (re.compile(rf"(?:Due\s+Date|Payment\s+Due|Due\s+By)\s*:?\s*({DATE_RE})", re.IGNORECASE),)
EFFECTIVE_DATE = (re.compile(rf"(?:Effective\s+Date|Start\s+Date|Commencement\s+Date)\s*:?\s*({DATE_RE})", re.IGNORECASE),)
EXPIRATION_DATE = (re.compile(rf"(?:Expiration\s+Date|Expiry\s+Date|End\s+Date|Termination\s+Date)\s*:?\s*({DATE_RE})", re.IGNORECASE),)

FROM_LINE = re.compile(r"^\s*(?:From|Vendor|Seller|Supplier)\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
TO_LINE = re.compile(r"^\s*(?:Bill(?:ed)?\s+To|Customer|Client|Sold\s+To|To)\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
PAYMENT_TERMS = (
    re.compile(r"(?:Payment\s+Terms|Terms)\s*:\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"\b(Net\s+\d{1,3}(?:\s+days)?)\b", re.IGNORECASE),
)
PAYMENT_METHOD = re.compile(r"\b(VISA|MASTERCARD|AMEX|AMERICAN EXPRESS|DISCOVER|CASH|DEBIT|CREDIT CARD|PAYPAL)\b", re.IGNORECASE)

PARTIES = (
    re.compile(r"(?:by\s+and\s+)?between\s+(.+?)\s+(?:\(.*?\)\s+)?and\s+(.+?)(?:\s*\(|[.;\n]|$)", re.IGNORECASE),
)
PARTY_LINE = re.compile(r"^\s*Party\s+[A-Z1-9]\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
CONTRACT_VALUE = re.compile(rf"(?:Contract\s+Value|Total\s+Value|Consideration|Fee)\s*:?\s*{_CURRENCY_PREFIX}{_AMOUNT}", re.IGNORECASE)
GOVERNING_LAW = re.compile(r"governed\s+by\s+(?:and\s+construed\s+in\s+accordance\s+with\s+)?the\s+laws?\s+of\s+(?:the\s+)?(?:State\s+of\s+)?([A-Z][A-Za-z ]+?)(?:[.,;\n]|$)", re.IGNORECASE)
CLAUSE = re.compile(r"^\s*(?:Section|Clause|Article|Term)\s+\d+[.:]?\s*([^\n]+)$", re.IGNORECASE | re.MULTILINE)

EMAIL = re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b")
PHONE = re.compile(r"(?<!\d)(?:\+?1[\-.\s]?)?\(?\d{3}\)?[\-.\s]?\d{3}[\-.\s]?\d{4}(?!\d)")
RECEIPT_ITEM = re.compile(r"^\s*([A-Za-z][^\n$€£]{1,60}?)\s+[$€£]?\s*(\d[\d,]*\.\d{2})\s*$", re.MULTILINE)
_NOT_ITEM = re.compile(r"\b(total|subtotal|tax|vat|change|cash|balance|tip|discount|amount)\b", re.IGNORECASE)

_CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "₹": "INR"}
_CURRENCY_CODE = re.compile(r"\b(USD|EUR|GBP|INR)\b")


# ── Value helpers ────────────────────────────────────────

def parse_amount(raw: str | None) -> float | None:
    """'$1,250.00' → 1250.0"""
    if not raw:
        return None
    digits = re.sub(r"[^\d.]", "", raw.replace(",", ""))
    if not digits or digits.count(".") > 1:
        return None
    try:
        return round(float(digits), 2)
    except ValueError:
        return None


def _first_group(patterns, text: str) -> str | None:
    for regex in patterns:
        match = regex.search(text)
        if match:
            return match.group(1).strip()
    return None


def _clean_line(value: str | None, limit: int = 120) -> str | None:
    if not value:
        return None
    value = re.sub(r"\s+", " ", value).strip(" ,;:-")
    return value[:limit] or None


# ── Generic ──────────────────────────────────────────────

def all_amounts(text: str) -> list[float]:
    amounts = (parse_amount(m.group(0)) for m in MONEY.finditer(text))
    return [a for a in amounts if a is not None]


def max_amount(text: str) -> float | None:
    amounts = all_amounts(text)
    return max(amounts) if amounts else None


def all_dates(text: str) -> list[str]:
    return [m.group(0).strip() for m in DATE.finditer(text)]


def first_date(text: str) -> str | None:
    dates = all_dates(text)
    return dates[0] if dates else None


def currency(text: str) -> str | None:
    for symbol, code in _CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    match = _CURRENCY_CODE.search(text)
    return match.group(1) if match else None


def emails(text: str) -> list[str]:
    return sorted(set(EMAIL.findall(text)))


def phone_numbers(text: str) -> list[str]:
    return sorted({m.group(0).strip() for m in PHONE.finditer(text)})


def title(text: str) -> str | None:
    for line in text.splitlines():
        line = line.strip()
        if 3 <= len(line) <= 100:
            return line
    return None


def summary(text: str, limit: int = 240) -> str | None:
    flat = re.sub(r"\s+", " ", text).strip()
    if not flat:
        return None
    if len(flat) <= limit:
        return flat
    cut = flat[:limit]
    end = cut.rfind(". ")
    return cut[: end + 1] if end > limit // 2 else cut.rstrip() + "..."


# ── Invoice ──────────────────────────────────────────────

def invoice_number(text: str) -> str | None:
    return _first_group(INVOICE_NUMBER, text)


def labeled_total(text: str) -> float | None:
    return parse_amount(_first_group(TOTAL, text))


def subtotal(text: str) -> float | None:
    return parse_amount(_first_group((SUBTOTAL,), text))


def tax(text: str) -> float | None:
    return parse_amount(_first_group((TAX,), text))


def discount(text: str) -> float | None:
    return parse_amount(_first_group((DISCOUNT,), text))


def invoice_date(text: str) -> str | None:
    return _first_group(INVOICE_DATE, text)


def due_date(text: str) -> str | None:
    return _first_group(DUE_DATE, text)


def vendor_name(text: str) -> str | None:
    return _clean_line(_first_group((FROM_LINE,), text))


def customer_name(text: str) -> str | None:
    return _clean_line(_first_group((TO_LINE,), text))


def payment_terms(text: str) -> str | None:
    return _clean_line(_first_group(PAYMENT_TERMS, text))


# ── Contract ─────────────────────────────────────────────

def parties(text: str) -> list[str]:
    found = [_clean_line(m) for m in PARTY_LINE.findall(text)]
    if not found:
        for regex in PARTIES:
            match = regex.search(text)
            if match:
                found = [_clean_line(match.group(1)), _clean_line(match.group(2))]
                break
    return [p for p in found if p]


def effective_date(text: str) -> str | None:
    return _first_group(EFFECTIVE_DATE, text)


def expiration_date(text: str) -> str | None:
    return _first_group(EXPIRATION_DATE, text)


def contract_value(text: str) -> float | None:
    return parse_amount(_first_group((CONTRACT_VALUE,), text))


def governing_law(text: str) -> str | None:
    return _clean_line(_first_group((GOVERNING_LAW,), text), limit=60)


def clauses(text: str, limit: int = 10) -> list[str]:
    return [c for c in (_clean_line(m, 160) for m in CLAUSE.findall(text)) if c][:limit]


# ── Receipt ──────────────────────────────────────────────

def payment_method(text: str) -> str | None:
    match = PAYMENT_METHOD.search(text)
    return match.group(1).upper() if match else None


def receipt_items(text: str, limit: int = 50) -> list[dict]:
    items = []
    for name, amount in RECEIPT_ITEM.findall(text):
        if _NOT_ITEM.search(name):
            continue
        items.append({"description": name.strip(), "amount": parse_amount(amount)})
        if len(items) >= limit:
            break
    return items
