"""Tests for two-stage expense validation."""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from splitledger.models import ExpenseInput, Party, SplitType
from splitledger.services.storage import InMemoryLedgerStorage
from splitledger.validation import ExpenseValidator


def make_expense(**overrides):
    values = dict(
        description="Groceries",
        amount_minor_units=4200,
        paid_by=Party.PARTY_A,
        date=date.today(),
    )
    values.update(overrides)
    return ExpenseInput(**values)


class BrokenStorage(InMemoryLedgerStorage):
    async def expense_exists(self, description, amount_minor_units, expense_date):
        raise ConnectionError("storage down")


class TestExpenseValidator:

    @pytest.mark.asyncio
    async def test_clean_expense(self):
        result = await ExpenseValidator().validate(make_expense())
        assert result.is_valid
        assert result.can_save
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_future_date_warning(self):
        result = await ExpenseValidator().validate(
            make_expense(date=date.today() + timedelta(days=30))
        )
        assert result.schema_valid
        assert result.can_save
        assert any(issue.issue_type == "future_date" for issue in result.issues)
        assert result.warnings

    @pytest.mark.asyncio
    async def test_near_future_date_is_fine(self):
        result = await ExpenseValidator().validate(
            make_expense(date=date.today() + timedelta(days=3))
        )
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_large_amount_warning(self):
        result = await ExpenseValidator().validate(make_expense(amount_minor_units=5_000_000))
        assert any(issue.issue_type == "suspicious_value" for issue in result.issues)

    @pytest.mark.asyncio
    async def test_one_sided_split_warning(self):
        expense = make_expense(
            amount_minor_units=1000,
            split_type=SplitType.EXACT,
            party_a_share=Decimal("0"),
            party_b_share=Decimal("1000"),
        )
        result = await ExpenseValidator().validate(expense)
        assert any(issue.issue_type == "one_sided" for issue in result.issues)
        assert result.can_save

    @pytest.mark.asyncio
    async def test_duplicate_warning(self):
        storage = InMemoryLedgerStorage()
        expense = make_expense()
        await storage.create_expense(expense)

        result = await ExpenseValidator(storage).validate(expense)
        assert any(issue.issue_type == "potential_duplicate" for issue in result.issues)
        assert result.can_save

    @pytest.mark.asyncio
    async def test_duplicate_check_can_be_skipped(self):
        storage = InMemoryLedgerStorage()
        expense = make_expense()
        await storage.create_expense(expense)

        result = await ExpenseValidator(storage).validate(expense, check_duplicates=False)
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_storage_errors_do_not_fail_validation(self):
        result = await ExpenseValidator(BrokenStorage()).validate(make_expense())
        assert result.is_valid

    @pytest.mark.asyncio
    async def test_validate_payload_reports_model_errors(self):
        expense, result = await ExpenseValidator().validate_payload({
            "description": "Rent",
            "amount_minor_units": 1000,
            "paid_by": "party_a",
            "split_type": "percentage",
            "party_a_share": "60",
            "party_b_share": "60",
            "date": "2025-01-01",
        })
        assert expense is None
        assert not result.schema_valid
        assert not result.can_save
        assert result.issues[0].field == "shares"

    @pytest.mark.asyncio
    async def test_validate_payload_field_errors(self):
        expense, result = await ExpenseValidator().validate_payload({
            "description": "",
            "amount_minor_units": -1,
            "paid_by": "party_a",
            "date": "2025-01-01",
        })
        assert expense is None
        fields = {issue.field for issue in result.issues}
        assert {"description", "amount_minor_units"} <= fields

    @pytest.mark.asyncio
    async def test_unchecked_exact_shares_are_caught(self):
        """Shares that skip model validation are still checked against the amount."""
        expense = ExpenseInput.model_construct(
            description="Dinner",
            amount_minor_units=1000,
            paid_by=Party.PARTY_B,
            split_type=SplitType.EXACT,
            party_a_share=Decimal("400"),
            party_b_share=Decimal("500"),
            date=date.today(),
        )
        result = await ExpenseValidator().validate(expense)
        assert not result.schema_valid
        assert not result.can_save
        assert [issue.issue_type for issue in result.issues] == ["inconsistent"]

    @pytest.mark.asyncio
    async def test_validate_payload_valid(self):
        expense, result = await ExpenseValidator().validate_payload({
            "description": "Rent",
            "amount_minor_units": 1000,
            "paid_by": "party_b",
            "date": date.today().isoformat(),
        })
        assert expense.paid_by == Party.PARTY_B
        assert result.is_valid

    @pytest.mark.asyncio
    async def test_user_friendly_summary_clean(self):
        validator = ExpenseValidator()
        result = await validator.validate(make_expense())
        assert validator.get_user_friendly_summary(result).startswith("✅")

    @pytest.mark.asyncio
    async def test_user_friendly_summary_with_problems(self):
        validator = ExpenseValidator()
        _, result = await validator.validate_payload({
            "description": "",
            "amount_minor_units": 100,
            "paid_by": "party_a",
            "date": "2025-01-01",
        })
        summary = validator.get_user_friendly_summary(result)
        assert "can't be saved" in summary
        assert "fix the issues" in summary
