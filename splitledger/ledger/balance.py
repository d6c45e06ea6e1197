"""
Balance Reconciliation

Folds the full expense and settlement history into a net balance.

DESIGN DECISION: The balance is recomputed from scratch on every call.
There is no cached or stored balance that could drift from the ledger;
the cost is O(n) in history size, which is fine for two people.

Settlement semantics:
- A settlement reduces what its payer still owes.
- Outstanding amounts are clamped at zero. Paying more than you owe is
  absorbed, not carried forward as credit. The absorbed amount is logged
  so it is never lost silently.
- Because every amount is positive, the clamped fold gives the same
  result in any settlement order.
"""

from typing import Iterable, Optional

import structlog

from splitledger.ledger.splits import compute_owed
from splitledger.models.ledger import (
    Balance,
    ExpenseInput,
    Party,
    SettlementInput,
    SettlementSuggestion,
)


logger = structlog.get_logger(__name__)


def reconcile(
    expenses: Iterable[ExpenseInput],
    settlements: Iterable[SettlementInput],
) -> Balance:
    """
    Derive the balance between party A and party B.

    Positive net_minor_units: party B owes party A.
    Negative net_minor_units: party A owes party B.
    """
    total_paid = {Party.PARTY_A: 0, Party.PARTY_B: 0}
    owes = {Party.PARTY_A: 0, Party.PARTY_B: 0}

    for expense in expenses:
        shares = compute_owed(expense)
        payer = expense.paid_by
        total_paid[payer] += expense.amount_minor_units

        # The payer's own share is covered by having paid.
        if payer == Party.PARTY_A:
            owes[Party.PARTY_B] += shares.party_b_owes
        else:
            owes[Party.PARTY_A] += shares.party_a_owes

    for settlement in settlements:
        outstanding = owes[settlement.paid_by]
        remaining = outstanding - settlement.amount_minor_units
        if remaining < 0:
            logger.warning(
                "settlement_overpayment_absorbed",
                paid_by=settlement.paid_by.value,
                absorbed_minor_units=-remaining,
            )
        owes[settlement.paid_by] = max(0, remaining)

    return Balance(
        net_minor_units=owes[Party.PARTY_B] - owes[Party.PARTY_A],
        party_a_total_paid=total_paid[Party.PARTY_A],
        party_b_total_paid=total_paid[Party.PARTY_B],
    )


def suggest_settlement(
    balance: Balance,
    minimum_minor_units: int = 100,
) -> Optional[SettlementSuggestion]:
    """
    Suggest the transfer that settles the balance.

    Returns None when the balance is below the minimum worth settling.
    """
    amount = abs(balance.net_minor_units)
    if amount == 0 or amount < minimum_minor_units:
        return None

    payer = Party.PARTY_A if balance.net_minor_units < 0 else Party.PARTY_B
    return SettlementSuggestion(
        paid_by=payer,
        paid_to=payer.other,
        amount_minor_units=amount,
    )
