"""
Split Calculation

Given one expense, compute what each party's share of it is.

GUARANTEE: party_a_owes + party_b_owes == expense.amount_minor_units,
for every split type and every amount. Only ONE side is ever rounded;
the other side is the remainder.

This module trusts its input. Share invariants are enforced when an
ExpenseInput is constructed, and ingestion validates before that.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from splitledger.models.ledger import (
    ExpenseInput,
    LineItemAssignTo,
    LineItemAssignment,
    LineItemSplit,
    OwedShares,
    Party,
    SplitType,
)


_HUNDRED = Decimal("100")


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_owed(expense: ExpenseInput) -> OwedShares:
    """
    Compute each party's share of an expense.

    EQUAL: half each; an odd cent goes to whoever did NOT pay, so the
    payer never under-collects.
    PERCENTAGE: party A's share is rounded, party B gets the remainder.
    EXACT: shares are already cents.
    """
    amount = expense.amount_minor_units

    if expense.split_type == SplitType.EQUAL:
        half, remainder = divmod(amount, 2)
        return OwedShares(
            party_a_owes=half + (remainder if expense.paid_by == Party.PARTY_B else 0),
            party_b_owes=half + (remainder if expense.paid_by == Party.PARTY_A else 0),
        )

    if expense.split_type == SplitType.PERCENTAGE:
        party_a_owes = round_half_up(Decimal(amount) * expense.party_a_share / _HUNDRED)
        return OwedShares(
            party_a_owes=party_a_owes,
            party_b_owes=amount - party_a_owes,
        )

    return OwedShares(
        party_a_owes=int(expense.party_a_share),
        party_b_owes=int(expense.party_b_share),
    )


def _party_a_percent(assignment: LineItemAssignment) -> Decimal:
    if assignment.assign_to == LineItemAssignTo.PARTY_A:
        return _HUNDRED
    if assignment.assign_to == LineItemAssignTo.PARTY_B:
        return Decimal("0")
    if assignment.assign_to == LineItemAssignTo.CUSTOM:
        custom = assignment.custom_percent if assignment.custom_percent is not None else Decimal("50")
        return max(Decimal("0"), min(_HUNDRED, custom))
    return Decimal("50")


def split_from_line_items(assignments: Iterable[LineItemAssignment]) -> LineItemSplit:
    """
    Turn per-item assignments into a two-party split.

    Items without a positive price are ignored. Per item, party A's
    cents are rounded and party B takes the remainder, so the two totals
    always add up to the basis. Percentages are derived from the totals
    and always add up to 100 (50/50 when there is nothing to split).
    """
    party_a_total = 0
    party_b_total = 0

    for assignment in assignments:
        price = assignment.price_minor_units
        if price is None or price <= 0:
            continue

        party_a_cents = round_half_up(Decimal(price) * _party_a_percent(assignment) / _HUNDRED)
        party_a_total += party_a_cents
        party_b_total += price - party_a_cents

    basis = party_a_total + party_b_total
    if basis > 0:
        party_a_percent = round_half_up(Decimal(party_a_total) * _HUNDRED / Decimal(basis))
    else:
        party_a_percent = 50

    return LineItemSplit(
        party_a_minor_units=party_a_total,
        party_b_minor_units=party_b_total,
        basis_minor_units=basis,
        party_a_percent=party_a_percent,
        party_b_percent=100 - party_a_percent,
    )
