"""
Row Validation

Turns one CSV record into either an ExpenseDraft or a list of errors.

Row problems are DATA, not exceptions: every error found is collected
into the list so the preview can show all of them at once.
"""

import re
from typing import Optional

from splitledger.categories import classify, normalize_token
from splitledger.models.ingestion import (
    CsvColumnMapping,
    CsvField,
    ExpenseDraft,
    PartnerNames,
    RowOverride,
)
from splitledger.models.ledger import ExpenseCategory, Party
from splitledger.normalization import money_to_minor_units, parse_calendar_date


MISSING_DESCRIPTION = "Missing description"
INVALID_AMOUNT = "Invalid amount"
INVALID_DATE = "Invalid date"

_PARTY_B_TOKENS = frozenset({"partner2", "p2", "2", "partyb", "b"})
_PARTY_A_TOKENS = frozenset({"partner1", "p1", "1", "partya", "a"})

_PARTY_B_WORDS = re.compile(r"\b(her|she|wife|girlfriend)\b", re.IGNORECASE)
_PARTY_A_WORDS = re.compile(r"\b(him|he|husband|boyfriend)\b", re.IGNORECASE)


def paid_by_from_text(raw: Optional[str], partners: Optional[PartnerNames] = None) -> Party:
    """
    Guess who paid from free text in a "paid by" column.

    Explicit tokens ("p2", "partner 1") win, then partner names, then a
    few relationship words. Anything unrecognised is party A.
    """
    text = (raw or "").strip()
    if not text:
        return Party.PARTY_A

    token = normalize_token(text)
    if token in _PARTY_B_TOKENS:
        return Party.PARTY_B
    if token in _PARTY_A_TOKENS:
        return Party.PARTY_A

    partners = partners or PartnerNames()
    names = [
        (normalize_token(partners.party_b_name), Party.PARTY_B),
        (normalize_token(partners.party_a_name), Party.PARTY_A),
    ]
    names = [(name, party) for name, party in names if name]
    for name, party in names:
        if token == name:
            return party
    # A name inside the other ("Ann" in "Joanna") must not steal the match
    for name, party in sorted(names, key=lambda item: len(item[0]), reverse=True):
        if name in token:
            return party

    if _PARTY_B_WORDS.search(text):
        return Party.PARTY_B
    if _PARTY_A_WORDS.search(text):
        return Party.PARTY_A

    return Party.PARTY_A


def _cell(record: dict[str, str], mapping: CsvColumnMapping, field: CsvField) -> str:
    column = mapping.column_for(field)
    if not column:
        return ""
    return str(record.get(column) or "").strip()


def validate_record(
    record: dict[str, str],
    mapping: CsvColumnMapping,
    override: Optional[RowOverride] = None,
    partners: Optional[PartnerNames] = None,
) -> tuple[list[str], Optional[ExpenseDraft]]:
    """
    Validate one record against the confirmed mapping.

    Returns: (errors, draft). draft is None whenever errors is non-empty.
    """
    errors = []

    description = _cell(record, mapping, CsvField.DESCRIPTION)
    if not description:
        errors.append(MISSING_DESCRIPTION)

    amount = money_to_minor_units(_cell(record, mapping, CsvField.AMOUNT))
    if amount is None or amount <= 0:
        errors.append(INVALID_AMOUNT)

    expense_date = parse_calendar_date(_cell(record, mapping, CsvField.DATE))
    if expense_date is None:
        errors.append(INVALID_DATE)

    if errors:
        return errors, None

    override = override or RowOverride()
    category = (
        override.category
        or classify(_cell(record, mapping, CsvField.CATEGORY))
        or ExpenseCategory.OTHER
    )
    paid_by = override.paid_by or paid_by_from_text(
        _cell(record, mapping, CsvField.PAID_BY),
        partners,
    )
    note = _cell(record, mapping, CsvField.NOTE)

    draft = ExpenseDraft(
        description=description[:200],
        amount_minor_units=amount,
        date=expense_date,
        category=category,
        paid_by=paid_by,
        note=note[:1000] or None,
    )
    return errors, draft
