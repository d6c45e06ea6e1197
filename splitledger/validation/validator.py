"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Positive amount
- Share invariants (percentages sum to 100, exact shares sum to amount)
- This catches malformed input from forms and raw payloads

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Suspicious amount detection
- One-sided split detection
- Duplicate detection
- This catches data that is valid but probably a mistake

Stage 2 only produces warnings. The user can always save after review.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from typing import Any, Mapping, Optional

import structlog
from pydantic import ValidationError

from splitledger.config import get_settings
from splitledger.ledger.splits import compute_owed
from splitledger.models.ledger import (
    ExpenseInput,
    SplitType,
    ValidationIssue,
    ValidationResult,
)
from splitledger.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)


def _format_minor_units(amount_minor_units: int) -> str:
    return f"{amount_minor_units / 100:,.2f}"


class ExpenseValidator:
    """
    Validates expenses through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (may need storage for duplicate checks)
    """

    def __init__(
        self,
        expense_storage: Optional[ExpenseStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            expense_storage: Storage interface for duplicate checking.
                             If None, duplicate checking is skipped.
        """
        self._storage = expense_storage
        self._settings = get_settings().ledger

    def _validate_schema(
        self,
        expense: ExpenseInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        # Blank descriptions and non-positive amounts never get this far;
        # ExpenseInput rejects them and validate_payload reports them.
        owed = compute_owed(expense)
        if owed.party_a_owes + owed.party_b_owes != expense.amount_minor_units:
            issues.append(ValidationIssue(
                field="shares",
                issue_type="inconsistent",
                message="Shares do not add up to the amount",
                severity="error",
                suggested_fix="Adjust the split so it covers the whole amount",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        expense: ExpenseInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        max_future_date = date.today() + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if expense.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({expense.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if expense.amount_minor_units > self._settings.max_expense_minor_units:
            issues.append(ValidationIssue(
                field="amount_minor_units",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({_format_minor_units(expense.amount_minor_units)}) "
                    "seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if expense.split_type != SplitType.EQUAL:
            owed = compute_owed(expense)
            if owed.party_a_owes == 0 or owed.party_b_owes == 0:
                issues.append(ValidationIssue(
                    field="shares",
                    issue_type="one_sided",
                    message="One person owes the whole amount",
                    severity="warning",
                    suggested_fix="Check the split if this was meant to be shared",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicates(
        self,
        expense: ExpenseInput,
    ) -> list[ValidationIssue]:
        """
        Check for a matching existing expense.

        Storage errors never fail validation.
        """
        issues = []

        if self._storage is None:
            return issues

        try:
            is_duplicate = await self._storage.expense_exists(
                description=expense.description,
                amount_minor_units=expense.amount_minor_units,
                expense_date=expense.date,
            )
        except Exception as e:
            logger.warning("duplicate_check_failed", error=str(e))
            return issues

        if is_duplicate:
            issues.append(ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message=(
                    f"\"{expense.description}\" for "
                    f"{_format_minor_units(expense.amount_minor_units)} on "
                    f"{expense.date} may already exist"
                ),
                severity="warning",
                suggested_fix="Please verify this isn't a duplicate entry",
            ))

        return issues

    async def validate(
        self,
        expense: ExpenseInput,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            expense: The expense to validate
            check_duplicates: Whether to check for duplicates (requires storage)
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(expense)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(expense)
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(expense))

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            can_save=schema_valid,
            issues=all_issues,
            warnings=warnings,
        )

    async def validate_payload(
        self,
        payload: Mapping[str, Any],
        check_duplicates: bool = True,
    ) -> tuple[Optional[ExpenseInput], ValidationResult]:
        """
        Validate raw (form or API) data.

        Model errors are reported as stage 1 issues instead of raised.

        Returns: (expense or None, result)
        """
        try:
            expense = ExpenseInput.model_validate(dict(payload))
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "shares",
                    issue_type=error["type"],
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            return None, ValidationResult(
                schema_valid=False,
                semantic_valid=False,
                is_valid=False,
                can_save=False,
                issues=issues,
            )

        return expense, await self.validate(expense, check_duplicates=check_duplicates)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! Please review the details below."

        lines = []

        if not result.schema_valid:
            lines.append("❌ This expense can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.can_save:
            lines.append("You can still save, but please review carefully.")
        else:
            lines.append("Please fix the issues above before saving.")

        return "\n".join(lines)
