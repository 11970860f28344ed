"""Tests for text cleaning, junk detection and confidence scoring."""

from docflow.processing.text_quality import (
    calculate_confidence,
    clean_text,
    looks_like_base64,
    printable_ratio,
    rejection_reason,
)


class TestCleanText:

    def test_strips_control_characters_and_collapses_whitespace(self):
        raw = "Invoice\x00\x07   Number:\t\tINV-1\r\n\r\n\r\n\r\nTotal:  $5.00  "
        assert clean_text(raw) == "Invoice Number: INV-1\n\nTotal: $5.00"

    def test_collapses_long_character_runs(self):
        assert clean_text("Total" + "-" * 30 + "$10.00") == "Total-$10.00"

    def test_caps_ellipses(self):
        assert clean_text("Chapter 1.........12") == "Chapter 1...12"

    def test_removes_leaked_xref_offsets(self):
        cleaned = clean_text("Page 1 0000012345n text")
        assert "0000012345n" not in cleaned
        assert cleaned.startswith("Page 1")

    def test_empty(self):
        assert clean_text("") == ""


class TestRejectionReason:

    def test_accepts_normal_text(self):
        assert rejection_reason("This invoice is due within thirty days of receipt.") is None

    def test_rejects_short_text(self):
        assert rejection_reason("too short") == "too_short"

    def test_rejects_low_printable_ratio(self):
        text = "\x01\x02\x03\x04" * 20 + "abc"
        assert rejection_reason(text) == "low_printable_ratio"

    def test_rejects_repeated_patterns(self):
        text = "a" * 15 + " b" + "c" * 15 + " d" + "e" * 15 + " words"
        assert rejection_reason(text) == "repeated_patterns"

    def test_rejects_base64(self):
        blob = "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVphYmNkZWZnaGlqa2xtbm9wcXJzdHV2d3h5eg=="
        assert looks_like_base64(blob)
        assert rejection_reason(blob) == "base64"

    def test_english_text_is_not_base64(self):
        assert not looks_like_base64("The invoice total for the month of March is due now please")


class TestConfidence:

    def test_clean_long_text_scores_high(self):
        text = "The quarterly statement lists every transaction. " * 30
        assert calculate_confidence(text) >= 0.95

    def test_bounded_between_zero_and_one(self):
        for text in ["", "a", "x" * 10000, "aaaaaaaaaa" * 50]:
            assert 0.0 <= calculate_confidence(text) <= 1.0

    def test_repeated_runs_lower_confidence(self):
        clean = "Total amount due for services rendered"
        noisy = clean + " ------- ======= ******* "
        assert calculate_confidence(noisy) < calculate_confidence(clean)

    def test_printable_ratio(self):
        assert printable_ratio("") == 0.0
        assert printable_ratio("abcd") == 1.0
        assert printable_ratio("ab\x00\x01") == 0.5
