"""
Ingestion Models for Split Ledger

Schemas for the spreadsheet import flow:
parsed CSV, column mapping, per-row preview results and commit results.

CRITICAL: An ExpenseDraft is PROPOSED data. It only becomes an Expense
after the storage create-call succeeds during commit.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from splitledger.models.ledger import (
    ExpenseCategory,
    ExpenseInput,
    Party,
    SplitType,
)


class ImportStep(str, Enum):
    """
    Import session state.

    Strictly forward: UPLOAD -> MAP -> PREVIEW -> DONE.
    reset() returns to UPLOAD from any state.
    """
    UPLOAD = "upload"
    MAP = "map"
    PREVIEW = "preview"
    DONE = "done"


class CsvField(str, Enum):
    """Expense fields a spreadsheet column can be mapped to."""
    DESCRIPTION = "description"
    AMOUNT = "amount"
    DATE = "date"
    CATEGORY = "category"
    PAID_BY = "paid_by"
    NOTE = "note"


REQUIRED_CSV_FIELDS: tuple[CsvField, ...] = (
    CsvField.DESCRIPTION,
    CsvField.AMOUNT,
    CsvField.DATE,
)


class ParsedCsv(BaseModel):
    """Raw tabular text split into headers and records."""

    delimiter: str
    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(
        default_factory=list,
        description="Raw cell lists, excluding the header row"
    )
    records: list[dict[str, str]] = Field(
        default_factory=list,
        description="Rows keyed by header"
    )


class CsvColumnMapping(BaseModel):
    """
    Which spreadsheet column feeds which expense field.

    Values are header names as they appear in the file.
    None means the field is not in the CSV.
    """

    description: Optional[str] = None
    amount: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None
    paid_by: Optional[str] = None
    note: Optional[str] = None

    def column_for(self, field: CsvField) -> Optional[str]:
        return getattr(self, field.value)

    def missing_required(self) -> list[CsvField]:
        return [f for f in REQUIRED_CSV_FIELDS if not self.column_for(f)]


class RowOverride(BaseModel):
    """User edits applied to a single row during preview."""

    paid_by: Optional[Party] = None
    category: Optional[ExpenseCategory] = None


class PartnerNames(BaseModel):
    """Display names used to recognise who paid from free text."""
    model_config = ConfigDict(str_strip_whitespace=True)

    party_a_name: str = ""
    party_b_name: str = ""


class ExpenseDraft(BaseModel):
    """A validated, not yet committed expense candidate from one CSV row."""

    description: str
    amount_minor_units: int = Field(gt=0)
    date: date
    category: ExpenseCategory = ExpenseCategory.OTHER
    paid_by: Party = Party.PARTY_A
    note: Optional[str] = None

    def to_expense_input(self) -> ExpenseInput:
        """Imported rows are always split equally."""
        return ExpenseInput(
            description=self.description,
            amount_minor_units=self.amount_minor_units,
            paid_by=self.paid_by,
            split_type=SplitType.EQUAL,
            category=self.category,
            date=self.date,
            note=self.note,
        )


class PreviewRow(BaseModel):
    """One row's ingestion result, independent of whether it is committed."""

    row_number: int = Field(
        ...,
        ge=1,
        description="1-based data row number (header excluded)"
    )
    raw_fields: dict[str, str] = Field(default_factory=dict)
    draft: Optional[ExpenseDraft] = None
    errors: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.draft is not None and not self.errors


class ImportPreview(BaseModel):
    """
    Preview of an import.

    Counts cover ALL rows; rows holds only the displayed prefix.
    """

    rows: list[PreviewRow] = Field(default_factory=list)
    total: int = 0
    valid: int = 0
    invalid: int = 0


class BatchCommitResult(BaseModel):
    """Outcome of committing a batch of drafts."""

    created: int = 0
    failed: int = 0
    cancelled: int = 0


class ImportResult(BaseModel):
    """
    Outcome of a whole import.

    created + failed + skipped + cancelled == total parsed rows.
    """

    created: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0

    @property
    def total(self) -> int:
        return self.created + self.failed + self.skipped + self.cancelled
