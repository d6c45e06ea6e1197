"""
Abstract Storage Interface

DESIGN DECISION: The remote ledger store is an injected collaborator,
defined only by this interface. This allows us to:
1. Keep the ingestion and reconciliation core free of network code
2. Use in-memory storage for testing
3. Swap the backend without touching business logic

The interface is intentionally small - just the operations the engine
needs. Any exception raised by create_expense during a CSV commit is
treated as a failure of that single row.
"""

from abc import ABC, abstractmethod
from datetime import date
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import (
    Expense,
    ExpenseInput,
    Settlement,
    SettlementInput,
)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def create_expense(self, expense: ExpenseInput) -> Expense:
        """
        Persist a new expense.

        Args:
            expense: The validated expense input

        Returns:
            The stored expense with its id and timestamps

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_expenses(self) -> list[Expense]:
        """Return the full expense history, oldest first."""
        pass

    @abstractmethod
    async def create_settlement(self, settlement: SettlementInput) -> Settlement:
        """
        Persist a new settlement.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_settlements(self) -> list[Settlement]:
        """Return the full settlement history, oldest first."""
        pass

    @abstractmethod
    async def expense_exists(
        self,
        description: str,
        amount_minor_units: int,
        expense_date: date,
    ) -> bool:
        """
        Check if a matching expense already exists (duplicate detection).

        Args:
            description: Expense description (case-insensitive match)
            amount_minor_units: Amount in cents
            expense_date: Date of the expense

        Returns:
            True if a matching expense exists
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one flow (e.g. one import), oldest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
