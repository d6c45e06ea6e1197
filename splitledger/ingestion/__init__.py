"""Spreadsheet (CSV) ingestion package."""

from splitledger.ingestion.batch import BoundedTaskQueue, TaskOutcome, TaskStatus, summarize
from splitledger.ingestion.csv_parser import (
    detect_delimiter,
    guess_mapping,
    normalize_header,
    parse_csv,
)
from splitledger.ingestion.errors import (
    CsvParseError,
    IngestionError,
    InvalidImportStepError,
    InvalidRowsError,
    MappingError,
)
from splitledger.ingestion.pipeline import CsvImportSession
from splitledger.ingestion.row_validator import paid_by_from_text, validate_record

__all__ = [
    "BoundedTaskQueue",
    "CsvImportSession",
    "CsvParseError",
    "IngestionError",
    "InvalidImportStepError",
    "InvalidRowsError",
    "MappingError",
    "TaskOutcome",
    "TaskStatus",
    "detect_delimiter",
    "guess_mapping",
    "normalize_header",
    "paid_by_from_text",
    "parse_csv",
    "summarize",
    "validate_record",
]
