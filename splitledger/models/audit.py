"""
Audit Models for Split Ledger

Every significant ingestion or ledger action is recorded as an audit event.
This provides:
1. Traceability of where each ledger record came from
2. Debugging information when an import partially fails
3. Ability to reconstruct what a user saw in preview vs what was committed

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from splitledger.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # CSV import
    CSV_PARSED = "csv_parsed"
    CSV_PARSE_FAILED = "csv_parse_failed"
    MAPPING_CONFIRMED = "mapping_confirmed"
    MAPPING_REJECTED = "mapping_rejected"
    PREVIEW_COMPUTED = "preview_computed"
    COMMIT_STARTED = "commit_started"
    COMMIT_REFUSED = "commit_refused"
    ROW_CREATED = "row_created"
    ROW_FAILED = "row_failed"
    COMMIT_COMPLETED = "commit_completed"
    COMMIT_CANCELLED = "commit_cancelled"
    IMPORT_RESET = "import_reset"

    # Receipt scanning
    RECEIPT_EXTRACTED = "receipt_extracted"
    RECEIPT_SCAN_FAILED = "receipt_scan_failed"

    # Ledger writes
    EXPENSE_SAVED = "expense_saved"
    EXPENSE_REJECTED = "expense_rejected"
    SETTLEMENT_SAVED = "settlement_saved"

    # External services
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'import', 'expense', 'receipt')"
    )
    entity_id: Optional[UUID] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one import)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.csv_parsed(filename, 3, 120, correlation_id)
        event = AuditEventBuilder.row_failed(7, "timeout", correlation_id)
    """

    @staticmethod
    def csv_parsed(
        filename: Optional[str],
        header_count: int,
        row_count: int,
        delimiter: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_PARSED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"CSV parsed: {row_count} rows",
            details={
                "filename": filename,
                "header_count": header_count,
                "row_count": row_count,
                "delimiter": delimiter,
            },
            is_user_action=True,
        )

    @staticmethod
    def csv_parse_failed(
        filename: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            correlation_id=correlation_id,
            description="CSV could not be parsed",
            error_message=error_message,
            details={"filename": filename},
        )

    @staticmethod
    def mapping_confirmed(
        mapping: dict[str, Optional[str]],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MAPPING_CONFIRMED,
            entity_type="import",
            correlation_id=correlation_id,
            description="Column mapping confirmed",
            details={"mapping": mapping},
            is_user_action=True,
        )

    @staticmethod
    def mapping_rejected(
        field_errors: dict[str, str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MAPPING_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Column mapping incomplete: {len(field_errors)} fields",
            details={"field_errors": field_errors},
        )

    @staticmethod
    def preview_computed(
        total: int,
        valid: int,
        invalid: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREVIEW_COMPUTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Preview: {valid} valid, {invalid} invalid of {total} rows",
            details={"total": total, "valid": valid, "invalid": invalid},
        )

    @staticmethod
    def import_reset(
        from_step: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_RESET,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import started over from step: {from_step}",
            details={"from_step": from_step},
            is_user_action=True,
        )

    @staticmethod
    def commit_started(
        total: int,
        valid: int,
        invalid: int,
        skip_invalid: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_STARTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import started: {valid} of {total} rows valid",
            details={
                "total": total,
                "valid": valid,
                "invalid": invalid,
                "skip_invalid": skip_invalid,
            },
            is_user_action=True,
        )

    @staticmethod
    def commit_refused(
        invalid: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_REFUSED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import refused: {invalid} invalid rows and skipping is off",
            details={"invalid": invalid},
        )

    @staticmethod
    def row_created(
        row_number: int,
        expense_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Row {row_number} imported",
            details={"row_number": row_number},
        )

    @staticmethod
    def row_failed(
        row_number: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Row {row_number} failed to import",
            error_message=error_message,
            details={"row_number": row_number},
        )

    @staticmethod
    def commit_completed(
        created: int,
        failed: int,
        skipped: int,
        cancelled: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.COMMIT_CANCELLED if cancelled else AuditEventType.COMMIT_COMPLETED
        )
        severity = AuditSeverity.WARNING if (failed or cancelled) else AuditSeverity.INFO
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import finished: {created} created, {failed} failed, {skipped} skipped",
            details={
                "created": created,
                "failed": failed,
                "skipped": skipped,
                "cancelled": cancelled,
            },
        )

    @staticmethod
    def receipt_extracted(
        confidence: float,
        fields_found: list[str],
        line_item_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt extracted with {confidence:.0%} confidence",
            details={
                "confidence": confidence,
                "fields_found": fields_found,
                "line_item_count": line_item_count,
            },
        )

    @staticmethod
    def receipt_scan_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt could not be scanned",
            error_message=error_message,
        )

    @staticmethod
    def expense_saved(
        expense_id: UUID,
        description: str,
        amount_minor_units: int,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {description} - {amount_minor_units} cents",
            details={
                "amount_minor_units": amount_minor_units,
                "source": source,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense not saved: {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def settlement_saved(
        settlement_id: UUID,
        amount_minor_units: int,
        paid_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_SAVED,
            entity_type="settlement",
            entity_id=settlement_id,
            correlation_id=correlation_id,
            description=f"Settlement saved: {amount_minor_units} cents paid by {paid_by}",
            details={
                "amount_minor_units": amount_minor_units,
                "paid_by": paid_by,
            },
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
