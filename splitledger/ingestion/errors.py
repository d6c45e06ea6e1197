"""Exceptions raised by the CSV ingestion pipeline."""

from typing import Optional


class IngestionError(Exception):
    """Base error for spreadsheet imports."""
    pass


class CsvParseError(IngestionError):
    """The file could not be read as a table with a header row."""
    pass


class MappingError(IngestionError):
    """Required expense fields are not mapped to any column."""

    def __init__(self, field_errors: dict[str, str], message: Optional[str] = None):
        self.field_errors = dict(field_errors)
        super().__init__(
            message or f"Unmapped required fields: {', '.join(sorted(self.field_errors))}"
        )


class InvalidRowsError(IngestionError):
    """Commit refused because some rows are invalid and skipping is off."""

    def __init__(self, invalid_count: int):
        self.invalid_count = invalid_count
        super().__init__(
            f"{invalid_count} row(s) are invalid. "
            "Fix them or enable skipping invalid rows."
        )


class InvalidImportStepError(IngestionError):
    """An operation was called in the wrong import step."""
    pass
