"""Expense validation package."""

from splitledger.validation.validator import ExpenseValidator

__all__ = ["ExpenseValidator"]
