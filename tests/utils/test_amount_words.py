"""
Tests for amount-in-words conversion.
"""
import pytest

from backend.utils.amount_words import amount_in_words, format_rupees, number_to_words


class TestNumberToWords:
    """Tests for Indian numbering system words."""

    @pytest.mark.parametrize(
        "n,words",
        [
            (0, "Zero"),
            (7, "Seven"),
            (15, "Fifteen"),
            (40, "Forty"),
            (99, "Ninety Nine"),
            (100, "One Hundred"),
            (1005, "One Thousand Five"),
            (25000, "Twenty Five Thousand"),
            (125000, "One Lakh Twenty Five Thousand"),
            (2500000, "Twenty Five Lakh"),
            (10000000, "One Crore"),
            (2000000000, "Two Hundred Crore"),
        ],
    )
    def test_words(self, n, words):
        assert number_to_words(n) == words

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            number_to_words(-1)


class TestAmountInWords:
    def test_appends_only(self):
        assert amount_in_words(43500) == "Forty Three Thousand Five Hundred Only"

    def test_rounds_to_rupees(self):
        assert amount_in_words(999.6) == "One Thousand Only"


class TestFormatRupees:
    """Tests for Indian digit grouping."""

    @pytest.mark.parametrize(
        "amount,text",
        [
            (0, "0"),
            (999, "999"),
            (1000, "1,000"),
            (125000, "1,25,000"),
            (12345678, "1,23,45,678"),
            (1499.6, "1,500"),
        ],
    )
    def test_grouping(self, amount, text):
        assert format_rupees(amount) == text
