"""Tests for category classification."""

import pytest

from splitledger.categories import classify, normalize_token, suggest_from_merchant
from splitledger.models import ExpenseCategory


class TestNormalizeToken:

    def test_strips_punctuation_and_case(self):
        assert normalize_token("  Food & Dining ") == "fooddining"

    def test_none(self):
        assert normalize_token(None) == ""


class TestClassify:
    """Free-form category text onto the fixed categories."""

    @pytest.mark.parametrize("text,expected", [
        ("food", ExpenseCategory.FOOD),
        ("GROCERIES", ExpenseCategory.GROCERIES),
        ("Food & Dining", ExpenseCategory.FOOD),
        ("dining", ExpenseCategory.FOOD),
        ("Travel", ExpenseCategory.TRAVEL),
    ])
    def test_matches(self, text, expected):
        assert classify(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", None, "spaceship"])
    def test_unknown_is_none(self, text):
        assert classify(text) is None


class TestSuggestFromMerchant:
    """Merchant names onto suggested categories."""

    @pytest.mark.parametrize("merchant,expected", [
        ("Trader Joe's #512", ExpenseCategory.GROCERIES),
        ("STARBUCKS STORE 1234", ExpenseCategory.FOOD),
        ("Uber Trip", ExpenseCategory.TRANSPORT),
        ("Netflix.com", ExpenseCategory.ENTERTAINMENT),
        ("CVS/pharmacy", ExpenseCategory.HEALTH),
    ])
    def test_known_merchants(self, merchant, expected):
        assert suggest_from_merchant(merchant) == expected

    def test_first_matching_category_wins(self):
        """Food hints are checked before transport hints."""
        assert suggest_from_merchant("Uber Eats") == ExpenseCategory.FOOD

    def test_unknown_merchant(self):
        assert suggest_from_merchant("Joe's Plumbing") is None
        assert suggest_from_merchant(None) is None
