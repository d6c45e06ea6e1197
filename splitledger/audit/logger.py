"""
Audit Logger

DESIGN DECISION: Every significant ingestion and ledger action is logged.
This provides:
1. Traceability of every imported or scanned record
2. Row-level diagnosis when a batch partially fails
3. A history the user can be shown

The audit logger:
- Is async so it can share the event loop with storage writes
- Gracefully handles sink failures (never breaks the flow it is auditing)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitledger.config import get_settings
from splitledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from splitledger.services.storage import AuditStorageInterface


def _configure_structlog(json_logs: bool) -> None:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Set up logging for an application entry point.

    A stdout handler is added to the root logger only when it has none,
    so handlers attached by the host application are kept. Arguments
    left as None come from AppSettings.
    """
    app_settings = get_settings().app
    if level is None:
        level = "DEBUG" if app_settings.debug_mode else app_settings.log_level
    if json_logs is None:
        json_logs = app_settings.log_json

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    _configure_structlog(json_logs)


# Rendering only; the root logger belongs to the host application
_configure_structlog(get_settings().app.log_json)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage sink, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("splitledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_csv_parsed(
        self,
        filename: Optional[str],
        header_count: int,
        row_count: int,
        delimiter: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.csv_parsed(
            filename=filename,
            header_count=header_count,
            row_count=row_count,
            delimiter=delimiter,
            correlation_id=correlation_id,
        ))

    async def log_csv_parse_failed(
        self,
        filename: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.csv_parse_failed(
            filename=filename,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_mapping_confirmed(
        self,
        mapping: dict[str, Optional[str]],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.mapping_confirmed(
            mapping=mapping,
            correlation_id=correlation_id,
        ))

    async def log_mapping_rejected(
        self,
        field_errors: dict[str, str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.mapping_rejected(
            field_errors=field_errors,
            correlation_id=correlation_id,
        ))

    async def log_preview_computed(
        self,
        total: int,
        valid: int,
        invalid: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.preview_computed(
            total=total,
            valid=valid,
            invalid=invalid,
            correlation_id=correlation_id,
        ))

    async def log_import_reset(
        self,
        from_step: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_reset(
            from_step=from_step,
            correlation_id=correlation_id,
        ))

    async def log_commit_started(
        self,
        total: int,
        valid: int,
        invalid: int,
        skip_invalid: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.commit_started(
            total=total,
            valid=valid,
            invalid=invalid,
            skip_invalid=skip_invalid,
            correlation_id=correlation_id,
        ))

    async def log_commit_refused(
        self,
        invalid: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.commit_refused(
            invalid=invalid,
            correlation_id=correlation_id,
        ))

    async def log_row_created(
        self,
        row_number: int,
        expense_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.row_created(
            row_number=row_number,
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_row_failed(
        self,
        row_number: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.row_failed(
            row_number=row_number,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_commit_completed(
        self,
        created: int,
        failed: int,
        skipped: int,
        cancelled: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.commit_completed(
            created=created,
            failed=failed,
            skipped=skipped,
            cancelled=cancelled,
            correlation_id=correlation_id,
        ))

    async def log_receipt_extracted(
        self,
        confidence: float,
        fields_found: list[str],
        line_item_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_extracted(
            confidence=confidence,
            fields_found=fields_found,
            line_item_count=line_item_count,
            correlation_id=correlation_id,
        ))

    async def log_receipt_scan_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_scan_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_expense_saved(
        self,
        expense_id: UUID,
        description: str,
        amount_minor_units: int,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_saved(
            expense_id=expense_id,
            description=description,
            amount_minor_units=amount_minor_units,
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_expense_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_settlement_saved(
        self,
        settlement_id: UUID,
        amount_minor_units: int,
        paid_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_saved(
            settlement_id=settlement_id,
            amount_minor_units=amount_minor_units,
            paid_by=paid_by,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a CSV import).
    Pass it through all subsequent operations.
    """
    return uuid4()
