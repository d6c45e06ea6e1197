"""
Category Classification

Maps free-form category text ("Food", "food & dining", "GROCERIES") and
merchant names ("Trader Joe's #512") onto the fixed ExpenseCategory enum.

DESIGN DECISION: We use simple token matching rather than ML because:
1. More transparent to the user
2. Easier to debug
3. The user can always override the category in preview

Both functions return None rather than guessing; callers decide the
default (usually ExpenseCategory.OTHER).
"""

import re
from typing import Optional

from splitledger.models.ledger import CATEGORY_LABELS, ExpenseCategory


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


# Ordered: the first category with a matching hint wins. Some hints can
# match more than one entry ("uber eats" vs "uber"), so keep the more
# specific categories first.
MERCHANT_CATEGORY_HINTS: tuple[tuple[ExpenseCategory, tuple[str, ...]], ...] = (
    (ExpenseCategory.FOOD, (
        "starbucks", "mcdonald", "chipotle", "taco", "pizza", "cafe",
        "restaurant", "doordash", "ubereats",
    )),
    (ExpenseCategory.GROCERIES, (
        "walmart", "costco", "trader joe", "whole foods", "aldi",
        "safeway", "kroger", "grocery",
    )),
    (ExpenseCategory.TRANSPORT, (
        "uber", "lyft", "shell", "chevron", "exxon", "bp", "gas", "fuel",
        "parking",
    )),
    (ExpenseCategory.SHOPPING, (
        "amazon", "target", "best buy", "ikea", "shop", "store",
    )),
    (ExpenseCategory.HEALTH, (
        "cvs", "walgreens", "pharmacy", "clinic", "hospital",
    )),
    (ExpenseCategory.UTILITIES, (
        "comcast", "verizon", "att", "utility", "electric", "water",
        "internet",
    )),
    (ExpenseCategory.ENTERTAINMENT, (
        "netflix", "spotify", "cinema", "movie", "theater",
    )),
    (ExpenseCategory.TRAVEL, (
        "airbnb", "hilton", "marriott", "delta", "united", "southwest",
        "hotel", "airlines",
    )),
)


def normalize_token(text) -> str:
    """Lowercase and drop everything that is not a letter or digit."""
    if text is None:
        return ""
    return _NON_ALNUM.sub("", str(text).strip().lower())


def classify(raw_text) -> Optional[ExpenseCategory]:
    """
    Match category text against category ids and labels.

    Order: exact id, exact label, then label containing the text
    ("dining" -> FOOD via "Food & Dining").
    """
    token = normalize_token(raw_text)
    if not token:
        return None

    for category in ExpenseCategory:
        if normalize_token(category.value) == token:
            return category

    for category, label in CATEGORY_LABELS.items():
        if normalize_token(label) == token:
            return category

    for category, label in CATEGORY_LABELS.items():
        if token in normalize_token(label):
            return category

    return None


def suggest_from_merchant(merchant_name) -> Optional[ExpenseCategory]:
    """
    Suggest a category from a merchant name.

    This is a SUGGESTION only - the user confirms it.
    """
    token = normalize_token(merchant_name)
    if not token:
        return None

    for category, hints in MERCHANT_CATEGORY_HINTS:
        if any(normalize_token(hint) in token for hint in hints):
            return category

    return None
