"""
Data Models Package

This package contains all Pydantic models used in Split Ledger.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.ledger import (
    CATEGORY_LABELS,
    Balance,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    LineItemAssignTo,
    LineItemAssignment,
    LineItemSplit,
    OwedShares,
    Party,
    Settlement,
    SettlementInput,
    SettlementSuggestion,
    SplitType,
    ValidationIssue,
    ValidationResult,
)
from splitledger.models.ingestion import (
    REQUIRED_CSV_FIELDS,
    BatchCommitResult,
    CsvColumnMapping,
    CsvField,
    ExpenseDraft,
    ImportPreview,
    ImportResult,
    ImportStep,
    ParsedCsv,
    PartnerNames,
    PreviewRow,
    RowOverride,
)
from splitledger.models.receipt import (
    AnalyzedField,
    DocumentAnalysis,
    ExpenseDocument,
    ReceiptExtraction,
    ReceiptLineItem,
    SummaryFieldPick,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CATEGORY_LABELS",
    "Balance",
    "Expense",
    "ExpenseCategory",
    "ExpenseInput",
    "LineItemAssignTo",
    "LineItemAssignment",
    "LineItemSplit",
    "OwedShares",
    "Party",
    "Settlement",
    "SettlementInput",
    "SettlementSuggestion",
    "SplitType",
    "ValidationIssue",
    "ValidationResult",
    # Ingestion models
    "REQUIRED_CSV_FIELDS",
    "BatchCommitResult",
    "CsvColumnMapping",
    "CsvField",
    "ExpenseDraft",
    "ImportPreview",
    "ImportResult",
    "ImportStep",
    "ParsedCsv",
    "PartnerNames",
    "PreviewRow",
    "RowOverride",
    # Receipt models
    "AnalyzedField",
    "DocumentAnalysis",
    "ExpenseDocument",
    "ReceiptExtraction",
    "ReceiptLineItem",
    "SummaryFieldPick",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
