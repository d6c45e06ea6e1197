"""Ledger arithmetic package."""

from splitledger.ledger.balance import reconcile, suggest_settlement
from splitledger.ledger.splits import (
    compute_owed,
    round_half_up,
    split_from_line_items,
)

__all__ = [
    "compute_owed",
    "reconcile",
    "round_half_up",
    "split_from_line_items",
    "suggest_settlement",
]
