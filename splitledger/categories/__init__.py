"""Category classification package."""

from splitledger.categories.classifier import (
    MERCHANT_CATEGORY_HINTS,
    classify,
    normalize_token,
    suggest_from_merchant,
)

__all__ = [
    "MERCHANT_CATEGORY_HINTS",
    "classify",
    "normalize_token",
    "suggest_from_merchant",
]
