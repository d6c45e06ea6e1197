"""
In-Memory Storage Implementation

Keeps the ledger and audit log in process memory. Used by tests and by
local runs where no remote store is configured.

TRADEOFFS:
- Nothing survives the process
- No concurrency control beyond the event loop (single-threaded)
"""

from datetime import date
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import (
    Expense,
    ExpenseInput,
    Settlement,
    SettlementInput,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
)


class InMemoryLedgerStorage(ExpenseStorageInterface):
    """Ledger storage backed by plain lists."""

    def __init__(self):
        self._expenses: list[Expense] = []
        self._settlements: list[Settlement] = []

    async def create_expense(self, expense: ExpenseInput) -> Expense:
        stored = Expense(**expense.model_dump())
        self._expenses.append(stored)
        return stored

    async def list_expenses(self) -> list[Expense]:
        return list(self._expenses)

    async def create_settlement(self, settlement: SettlementInput) -> Settlement:
        stored = Settlement(**settlement.model_dump())
        self._settlements.append(stored)
        return stored

    async def list_settlements(self) -> list[Settlement]:
        return list(self._settlements)

    async def expense_exists(
        self,
        description: str,
        amount_minor_units: int,
        expense_date: date,
    ) -> bool:
        wanted = description.strip().lower()
        return any(
            e.description.lower() == wanted
            and e.amount_minor_units == amount_minor_units
            and e.date == expense_date
            for e in self._expenses
        )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log backed by a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]
