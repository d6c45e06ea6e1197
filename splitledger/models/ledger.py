"""
Core Ledger Models for Split Ledger

These models define the strict schemas for every ledger record.
They are designed to:
1. Keep money as integer minor units (no float drift)
2. Enforce split invariants at construction time
3. Be serializable for storage and logging

DESIGN DECISION: Balances are NOT modelled as stored records.
A Balance is always derived from the full expense and settlement
history, so it can never drift from the ledger.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Party(str, Enum):
    """The two people sharing the ledger."""
    PARTY_A = "party_a"
    PARTY_B = "party_b"

    @property
    def other(self) -> "Party":
        return Party.PARTY_B if self is Party.PARTY_A else Party.PARTY_A


class SplitType(str, Enum):
    """
    How an expense's cost is divided.

    EQUAL: 50/50, stored shares are ignored
    PERCENTAGE: shares are percentages summing to 100
    EXACT: shares are minor-unit amounts summing to the expense amount
    """
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    EXACT = "exact"


class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization; free text is mapped onto these by the
    category classifier.
    """
    FOOD = "food"
    GROCERIES = "groceries"
    TRANSPORT = "transport"
    HOME = "home"
    UTILITIES = "utilities"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    HEALTH = "health"
    TRAVEL = "travel"
    GIFTS = "gifts"
    OTHER = "other"


CATEGORY_LABELS: dict[ExpenseCategory, str] = {
    ExpenseCategory.FOOD: "Food & Dining",
    ExpenseCategory.GROCERIES: "Groceries",
    ExpenseCategory.TRANSPORT: "Transport",
    ExpenseCategory.HOME: "Home",
    ExpenseCategory.UTILITIES: "Utilities",
    ExpenseCategory.ENTERTAINMENT: "Entertainment",
    ExpenseCategory.SHOPPING: "Shopping",
    ExpenseCategory.HEALTH: "Health",
    ExpenseCategory.TRAVEL: "Travel",
    ExpenseCategory.GIFTS: "Gifts",
    ExpenseCategory.OTHER: "Other",
}


class LineItemAssignTo(str, Enum):
    """Who a single receipt line item belongs to."""
    PARTY_A = "party_a"
    PARTY_B = "party_b"
    SPLIT = "split"
    CUSTOM = "custom"


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseInput(BaseModel):
    """
    Everything needed to create an expense.

    This is what the storage create-call receives, whether the expense
    came from manual entry, a CSV import or a scanned receipt.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount_minor_units: int = Field(
        ...,
        gt=0,
        description="Amount in cents"
    )
    paid_by: Party
    split_type: SplitType = SplitType.EQUAL
    party_a_share: Decimal = Field(
        default=Decimal("50"),
        ge=0,
        description="Percentage or exact cents, depending on split type"
    )
    party_b_share: Decimal = Field(
        default=Decimal("50"),
        ge=0,
        description="Percentage or exact cents, depending on split type"
    )
    category: ExpenseCategory = ExpenseCategory.OTHER
    date: date
    note: Optional[str] = Field(
        default=None,
        max_length=1000
    )

    @model_validator(mode='after')
    def validate_shares(self) -> 'ExpenseInput':
        """Enforce the share invariant for the split type."""
        total = self.party_a_share + self.party_b_share

        if self.split_type == SplitType.PERCENTAGE:
            if self.party_a_share > 100 or self.party_b_share > 100:
                raise ValueError("Percentage shares cannot exceed 100")
            if total != 100:
                raise ValueError(
                    f"Percentage shares must sum to 100 (got {total})"
                )

        elif self.split_type == SplitType.EXACT:
            for share in (self.party_a_share, self.party_b_share):
                if share != share.to_integral_value():
                    raise ValueError("Exact shares must be whole minor units")
            if total != self.amount_minor_units:
                raise ValueError(
                    f"Exact shares must sum to the amount "
                    f"({total} != {self.amount_minor_units})"
                )

        return self


class Expense(ExpenseInput):
    """
    A persisted expense.

    Immutable history: editing an expense triggers a new reconciliation
    pass, it never creates a stored balance.
    """

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# SETTLEMENTS
# =============================================================================

class SettlementInput(BaseModel):
    """A real-world transfer that reduces an outstanding balance."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount_minor_units: int = Field(..., gt=0)
    paid_by: Party
    paid_to: Party
    date: date
    note: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def validate_parties(self) -> 'SettlementInput':
        if self.paid_to == self.paid_by:
            raise ValueError("A settlement must be paid to the other party")
        return self


class Settlement(SettlementInput):
    """A persisted settlement."""

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# DERIVED VALUES
# =============================================================================

class OwedShares(BaseModel):
    """Each party's share of one expense, summing to its amount."""

    party_a_owes: int = Field(ge=0)
    party_b_owes: int = Field(ge=0)


class Balance(BaseModel):
    """
    Net position between the two parties.

    Positive net means party B owes party A;
    negative net means party A owes party B.
    """

    net_minor_units: int = 0
    party_a_total_paid: int = 0
    party_b_total_paid: int = 0


class SettlementSuggestion(BaseModel):
    """The transfer that would bring the balance back to zero."""

    paid_by: Party
    paid_to: Party
    amount_minor_units: int = Field(gt=0)


class LineItemAssignment(BaseModel):
    """One receipt line item and who it belongs to."""

    description: Optional[str] = None
    price_minor_units: Optional[int] = None
    quantity: Optional[int] = None
    assign_to: LineItemAssignTo = LineItemAssignTo.SPLIT
    custom_percent: Optional[Decimal] = Field(
        default=None,
        description="Party A's percentage when assign_to is custom"
    )


class LineItemSplit(BaseModel):
    """Totals derived from line-item assignments."""

    party_a_minor_units: int = 0
    party_b_minor_units: int = 0
    basis_minor_units: int = 0
    party_a_percent: int = 50
    party_b_percent: int = 50


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage expense validation.

    Stage 1: Schema validation (required fields, share invariants)
    Stage 2: Semantic validation (suspicious dates, amounts, duplicates)
    """

    validated_at: datetime = Field(default_factory=utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    can_save: bool = Field(
        ...,
        description="Can this expense be saved (possibly after review)?"
    )

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")
