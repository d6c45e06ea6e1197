"""
Main Orchestrator for Split Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. CSV Import (upload → map → preview → commit)
2. Receipt Scan (document → OCR → extract → review → save)
3. Ledger (add expense / settlement → balance → settle up)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before the user has reviewed it
- Storage and the OCR service are injected, never global
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Union
from uuid import UUID

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.config import get_settings
from splitledger.ingestion import (
    CsvImportSession,
    CsvParseError,
    InvalidRowsError,
    MappingError,
    TaskStatus,
)
from splitledger.ledger import reconcile, suggest_settlement
from splitledger.models.ingestion import (
    CsvColumnMapping,
    CsvField,
    ImportPreview,
    ImportResult,
    ImportStep,
    ParsedCsv,
    PartnerNames,
    RowOverride,
)
from splitledger.models.ledger import (
    Balance,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    LineItemAssignment,
    Party,
    Settlement,
    SettlementInput,
    SettlementSuggestion,
    ValidationResult,
)
from splitledger.models.receipt import ReceiptExtraction
from splitledger.services.ocr import (
    DocumentAnalyzer,
    ReceiptScanError,
    ReceiptScanService,
)
from splitledger.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    InMemoryLedgerStorage,
)
from splitledger.validation import ExpenseValidator


class CsvImportFlow:
    """
    Orchestrates a spreadsheet import.

    Flow:
    1. Upload → parse, guess mapping
    2. Map → user confirms columns
    3. Preview → user reviews rows, fixes who paid / category
    4. Commit → one expense per valid row

    All events of one import share a correlation ID. reset() starts a
    new import with a new ID.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        session: Optional[CsvImportSession] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._session = session or CsvImportSession()
        self._correlation_id = create_correlation_id()

    @property
    def session(self) -> CsvImportSession:
        return self._session

    @property
    def correlation_id(self) -> UUID:
        return self._correlation_id

    async def upload(self, content: Union[str, bytes], filename: Optional[str] = None) -> ParsedCsv:
        try:
            parsed = self._session.load(content, filename=filename)
        except CsvParseError as e:
            if self._audit_logger:
                await self._audit_logger.log_csv_parse_failed(
                    filename=filename,
                    error_message=str(e),
                    correlation_id=self._correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_csv_parsed(
                filename=filename,
                header_count=len(parsed.headers),
                row_count=len(parsed.records),
                delimiter=parsed.delimiter,
                correlation_id=self._correlation_id,
            )
        return parsed

    def update_mapping(self, field: CsvField, column: Optional[str]) -> CsvColumnMapping:
        return self._session.update_mapping(field, column)

    async def confirm_mapping(self) -> CsvColumnMapping:
        try:
            mapping = self._session.confirm_mapping()
        except MappingError as e:
            if self._audit_logger:
                await self._audit_logger.log_mapping_rejected(
                    field_errors=e.field_errors,
                    correlation_id=self._correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_mapping_confirmed(
                mapping=mapping.model_dump(),
                correlation_id=self._correlation_id,
            )
        return mapping

    def set_row_override(
        self,
        row_number: int,
        paid_by: Optional[Party] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> RowOverride:
        return self._session.set_row_override(row_number, paid_by=paid_by, category=category)

    async def preview(self, limit: Optional[int] = None) -> ImportPreview:
        preview = self._session.preview(limit=limit)
        if self._audit_logger:
            await self._audit_logger.log_preview_computed(
                total=preview.total,
                valid=preview.valid,
                invalid=preview.invalid,
                correlation_id=self._correlation_id,
            )
        return preview

    async def commit(
        self,
        skip_invalid: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ImportResult:
        """
        Commit the previewed rows to storage.

        Raises:
            InvalidRowsError: If rows are invalid and skipping is off
            InvalidImportStepError: If the import is not at PREVIEW
        """
        self._session.require_step(ImportStep.PREVIEW)

        skip_invalid = self._session.skip_invalid if skip_invalid is None else skip_invalid
        counts = self._session.preview(limit=0)

        if self._audit_logger:
            await self._audit_logger.log_commit_started(
                total=counts.total,
                valid=counts.valid,
                invalid=counts.invalid,
                skip_invalid=skip_invalid,
                correlation_id=self._correlation_id,
            )

        try:
            result = await self._session.commit(
                self._storage,
                skip_invalid=skip_invalid,
                cancel_event=cancel_event,
            )
        except InvalidRowsError as e:
            if self._audit_logger:
                await self._audit_logger.log_commit_refused(
                    invalid=e.invalid_count,
                    correlation_id=self._correlation_id,
                )
            raise

        if self._audit_logger:
            for row_number, outcome in self._session.row_outcomes:
                if outcome.status == TaskStatus.SUCCEEDED:
                    await self._audit_logger.log_row_created(
                        row_number=row_number,
                        expense_id=outcome.result.id,
                        correlation_id=self._correlation_id,
                    )
                elif outcome.status == TaskStatus.FAILED:
                    await self._audit_logger.log_row_failed(
                        row_number=row_number,
                        error_message=outcome.error or "",
                        correlation_id=self._correlation_id,
                    )
            await self._audit_logger.log_commit_completed(
                created=result.created,
                failed=result.failed,
                skipped=result.skipped,
                cancelled=result.cancelled,
                correlation_id=self._correlation_id,
            )

        return result

    async def reset(self) -> None:
        previous = self._session.reset()
        if self._audit_logger:
            await self._audit_logger.log_import_reset(
                from_step=previous.value,
                correlation_id=self._correlation_id,
            )
        self._correlation_id = create_correlation_id()


class ReceiptScanFlow:
    """
    Orchestrates the receipt scan flow.

    Flow:
    1. Scan → OCR service, field extraction
    2. Review → Present prefill to user (PAUSE - require confirmation)
    3. Save → Validate, then persist

    The system NEVER auto-saves a scanned receipt.
    """

    def __init__(
        self,
        scan_service: ReceiptScanService,
        storage: Optional[ExpenseStorageInterface] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._scan_service = scan_service
        self._storage = storage
        self._validator = validator or ExpenseValidator(storage)
        self._audit_logger = audit_logger

    async def scan_receipt(
        self,
        document: bytes,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ReceiptExtraction, bool, str]:
        """
        Scan a receipt for review.

        Returns:
            (extraction, can_apply, message)
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            extraction = await self._scan_service.scan(document)
        except ReceiptScanError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="document_analyzer",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                await self._audit_logger.log_receipt_scan_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        can_apply, message = self._scan_service.should_apply(extraction)

        if self._audit_logger:
            fields_found = [
                name for name, value in (
                    ("total", extraction.total_amount_minor_units),
                    ("merchant", extraction.merchant_name),
                    ("date", extraction.date),
                )
                if value is not None
            ]
            await self._audit_logger.log_receipt_extracted(
                confidence=extraction.confidence,
                fields_found=fields_found,
                line_item_count=len(extraction.line_items),
                correlation_id=correlation_id,
            )

        return extraction, can_apply, message

    async def save_expense(
        self,
        extraction: ReceiptExtraction,
        paid_by: Party,
        description: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        expense_date: Optional[date] = None,
        assignments: Optional[Iterable[LineItemAssignment]] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Expense], ValidationResult]:
        """
        Save a reviewed receipt as an expense.

        This should ONLY be called after the user has reviewed the prefill.

        Raises:
            ReceiptScanError: If amount, date or description is still missing
        """
        expense = self._scan_service.to_expense_input(
            extraction,
            paid_by=paid_by,
            description=description,
            category=category,
            expense_date=expense_date,
            assignments=assignments,
            note=note,
        )
        return await _validate_and_save(
            expense,
            storage=self._storage,
            validator=self._validator,
            audit_logger=self._audit_logger,
            source="receipt",
            correlation_id=correlation_id,
        )


class LedgerFlow:
    """
    Orchestrates manual expenses, settlements and the balance.

    The balance is always derived from the full stored history.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or ExpenseValidator(storage)
        self._audit_logger = audit_logger
        self._settings = get_settings().ledger

    async def add_expense(
        self,
        expense: Union[ExpenseInput, Mapping[str, Any]],
        check_duplicates: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Expense], ValidationResult]:
        """
        Validate and save an expense.

        Returns (None, result) when the expense cannot be saved; the
        result's issues say why.
        """
        if not isinstance(expense, ExpenseInput):
            parsed, result = await self._validator.validate_payload(
                expense, check_duplicates=check_duplicates
            )
            if parsed is None:
                if self._audit_logger:
                    await self._audit_logger.log_expense_rejected(
                        issues=[issue.model_dump() for issue in result.issues],
                        correlation_id=correlation_id,
                    )
                return None, result
            expense = parsed

        return await _validate_and_save(
            expense,
            storage=self._storage,
            validator=self._validator,
            audit_logger=self._audit_logger,
            source="manual",
            check_duplicates=check_duplicates,
            correlation_id=correlation_id,
        )

    async def add_settlement(
        self,
        settlement: SettlementInput,
        correlation_id: Optional[UUID] = None,
    ) -> Settlement:
        saved = await self._storage.create_settlement(settlement)
        if self._audit_logger:
            await self._audit_logger.log_settlement_saved(
                settlement_id=saved.id,
                amount_minor_units=saved.amount_minor_units,
                paid_by=saved.paid_by.value,
                correlation_id=correlation_id,
            )
        return saved

    async def get_balance(self) -> Balance:
        expenses = await self._storage.list_expenses()
        settlements = await self._storage.list_settlements()
        return reconcile(expenses, settlements)

    async def suggest_settlement(self) -> Optional[SettlementSuggestion]:
        balance = await self.get_balance()
        return suggest_settlement(
            balance,
            minimum_minor_units=self._settings.settle_up_minimum_minor_units,
        )


async def _validate_and_save(
    expense: ExpenseInput,
    storage: Optional[ExpenseStorageInterface],
    validator: ExpenseValidator,
    audit_logger: Optional[AuditLogger],
    source: str,
    check_duplicates: bool = True,
    correlation_id: Optional[UUID] = None,
) -> tuple[Optional[Expense], ValidationResult]:
    result = await validator.validate(expense, check_duplicates=check_duplicates)

    if not result.can_save:
        if audit_logger:
            await audit_logger.log_expense_rejected(
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
        return None, result

    if storage is None:
        return None, result

    saved = await storage.create_expense(expense)
    if audit_logger:
        await audit_logger.log_expense_saved(
            expense_id=saved.id,
            description=saved.description,
            amount_minor_units=saved.amount_minor_units,
            source=source,
            correlation_id=correlation_id,
        )
    return saved, result


def create_app_components(
    storage: Optional[ExpenseStorageInterface] = None,
    analyzer: Optional[DocumentAnalyzer] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[LedgerFlow, CsvImportFlow, Optional[ReceiptScanFlow]]:
    """
    Factory function to create all application components.

    Args:
        storage: Ledger storage. Defaults to in-memory storage.
        analyzer: OCR service. Without one, receipt scanning is unavailable.
        audit_storage: Audit sink. Without one, audit events are only logged.

    Returns:
        (ledger_flow, csv_import_flow, receipt_scan_flow)
    """
    settings = get_settings()
    storage = storage or InMemoryLedgerStorage()
    audit_logger = AuditLogger(audit_storage)
    validator = ExpenseValidator(storage)

    ledger_flow = LedgerFlow(
        storage=storage,
        validator=validator,
        audit_logger=audit_logger,
    )
    csv_import_flow = CsvImportFlow(
        storage=storage,
        audit_logger=audit_logger,
        session=CsvImportSession(
            partners=PartnerNames(
                party_a_name=settings.ledger.party_a_name,
                party_b_name=settings.ledger.party_b_name,
            ),
        ),
    )

    receipt_scan_flow = None
    if analyzer is not None:
        receipt_scan_flow = ReceiptScanFlow(
            scan_service=ReceiptScanService(analyzer),
            storage=storage,
            validator=validator,
            audit_logger=audit_logger,
        )

    return ledger_flow, csv_import_flow, receipt_scan_flow
