"""
CSV Import Session

DESIGN DECISION: An import is a small state machine:

    UPLOAD -> MAP -> PREVIEW -> DONE

Each step only accepts the operations that make sense in it, and
reset() goes back to UPLOAD from anywhere. Nothing touches storage
before commit(), and commit() can only run once per upload.

CRITICAL: A row with errors is never committed. Either the user opts to
skip invalid rows, or the commit is refused before any storage call.
"""

import asyncio
from typing import Optional, Union

import structlog

from splitledger.config import get_settings
from splitledger.ingestion.batch import BoundedTaskQueue, TaskOutcome, TaskStatus, summarize
from splitledger.ingestion.csv_parser import guess_mapping, parse_csv
from splitledger.ingestion.errors import (
    CsvParseError,
    InvalidImportStepError,
    InvalidRowsError,
    MappingError,
)
from splitledger.ingestion.row_validator import validate_record
from splitledger.models.ingestion import (
    CsvColumnMapping,
    CsvField,
    ImportPreview,
    ImportResult,
    ImportStep,
    ParsedCsv,
    PartnerNames,
    PreviewRow,
    RowOverride,
)
from splitledger.models.ledger import ExpenseCategory, Party
from splitledger.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)


class CsvImportSession:
    """
    One spreadsheet import, from upload to commit.

    Row numbers are 1-based data rows; the header row is not counted.
    """

    def __init__(
        self,
        partners: Optional[PartnerNames] = None,
        preview_row_limit: Optional[int] = None,
        skip_invalid: Optional[bool] = None,
        commit_concurrency: Optional[int] = None,
    ):
        settings = get_settings()
        self._partners = partners or PartnerNames(
            party_a_name=settings.ledger.party_a_name,
            party_b_name=settings.ledger.party_b_name,
        )
        self._preview_row_limit = preview_row_limit or settings.csv_import.preview_row_limit
        self._skip_invalid = (
            skip_invalid if skip_invalid is not None else settings.csv_import.skip_invalid_rows
        )
        self._queue = BoundedTaskQueue(
            commit_concurrency or settings.csv_import.commit_concurrency
        )
        self._clear()

    def _clear(self) -> None:
        self._step = ImportStep.UPLOAD
        self._filename: Optional[str] = None
        self._parsed: Optional[ParsedCsv] = None
        self._mapping = CsvColumnMapping()
        self._overrides: dict[int, RowOverride] = {}
        self._row_outcomes: list[tuple[int, TaskOutcome]] = []
        self._result: Optional[ImportResult] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def step(self) -> ImportStep:
        return self._step

    @property
    def filename(self) -> Optional[str]:
        return self._filename

    @property
    def parsed(self) -> Optional[ParsedCsv]:
        return self._parsed

    @property
    def mapping(self) -> CsvColumnMapping:
        return self._mapping

    @property
    def skip_invalid(self) -> bool:
        return self._skip_invalid

    @property
    def result(self) -> Optional[ImportResult]:
        return self._result

    @property
    def row_outcomes(self) -> list[tuple[int, TaskOutcome]]:
        """(row_number, outcome) for every row handed to storage by commit()."""
        return list(self._row_outcomes)

    def require_step(self, *allowed: ImportStep) -> None:
        if self._step not in allowed:
            expected = " or ".join(step.value for step in allowed)
            raise InvalidImportStepError(
                f"Expected import step {expected}, but the import is at {self._step.value}"
            )

    # -------------------------------------------------------------------------
    # UPLOAD
    # -------------------------------------------------------------------------

    def load(self, content: Union[str, bytes], filename: Optional[str] = None) -> ParsedCsv:
        """
        Parse uploaded content and guess a column mapping.

        Raises:
            CsvParseError: The session stays at UPLOAD
        """
        self.require_step(ImportStep.UPLOAD)

        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise CsvParseError(f"File is not UTF-8 text: {e}") from e

        parsed = parse_csv(content)

        self._filename = filename
        self._parsed = parsed
        self._mapping = guess_mapping(parsed.headers)
        self._step = ImportStep.MAP

        logger.info(
            "csv_loaded",
            filename=filename,
            delimiter=parsed.delimiter,
            headers=len(parsed.headers),
            rows=len(parsed.records),
        )
        return parsed

    # -------------------------------------------------------------------------
    # MAP
    # -------------------------------------------------------------------------

    def update_mapping(self, field: CsvField, column: Optional[str]) -> CsvColumnMapping:
        """Point one expense field at a column, or None to unmap it."""
        self.require_step(ImportStep.MAP)

        if column is not None and column not in self._parsed.headers:
            raise MappingError({field.value: f"Unknown column: {column}"})

        self._mapping = self._mapping.model_copy(update={field.value: column})
        return self._mapping

    def confirm_mapping(self) -> CsvColumnMapping:
        """
        Accept the current mapping and move to PREVIEW.

        Raises:
            MappingError: If a required field is unmapped
        """
        self.require_step(ImportStep.MAP)

        missing = self._mapping.missing_required()
        if missing:
            raise MappingError({field.value: "Required" for field in missing})

        self._step = ImportStep.PREVIEW
        logger.info("csv_mapping_confirmed", mapping=self._mapping.model_dump())
        return self._mapping

    # -------------------------------------------------------------------------
    # PREVIEW
    # -------------------------------------------------------------------------

    def set_row_override(
        self,
        row_number: int,
        paid_by: Optional[Party] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> RowOverride:
        """Override who paid and/or the category for one row."""
        self.require_step(ImportStep.PREVIEW)

        if not 1 <= row_number <= len(self._parsed.records):
            raise ValueError(f"Row {row_number} does not exist")

        current = self._overrides.get(row_number, RowOverride())
        override = RowOverride(
            paid_by=paid_by if paid_by is not None else current.paid_by,
            category=category if category is not None else current.category,
        )
        self._overrides[row_number] = override
        return override

    def clear_row_override(self, row_number: int) -> None:
        self.require_step(ImportStep.PREVIEW)
        self._overrides.pop(row_number, None)

    def validate_rows(self) -> list[PreviewRow]:
        """Validate every parsed row with the confirmed mapping."""
        self.require_step(ImportStep.PREVIEW, ImportStep.DONE)

        rows = []
        for row_number, record in enumerate(self._parsed.records, start=1):
            errors, draft = validate_record(
                record,
                self._mapping,
                override=self._overrides.get(row_number),
                partners=self._partners,
            )
            rows.append(PreviewRow(
                row_number=row_number,
                raw_fields=record,
                draft=draft,
                errors=errors,
            ))
        return rows

    def preview(self, limit: Optional[int] = None) -> ImportPreview:
        """
        Validate all rows; return counts for all and at most `limit` rows.
        """
        rows = self.validate_rows()
        limit = limit if limit is not None else self._preview_row_limit
        valid = sum(1 for row in rows if row.is_valid)

        return ImportPreview(
            rows=rows[:max(0, limit)],
            total=len(rows),
            valid=valid,
            invalid=len(rows) - valid,
        )

    # -------------------------------------------------------------------------
    # COMMIT
    # -------------------------------------------------------------------------

    async def commit(
        self,
        storage: ExpenseStorageInterface,
        skip_invalid: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ImportResult:
        """
        Create one expense per valid row.

        A failing create is counted and logged, and the batch carries on.

        Raises:
            InvalidRowsError: If rows are invalid and skipping is off.
                Nothing has been written when this is raised.
        """
        self.require_step(ImportStep.PREVIEW)

        skip_invalid = self._skip_invalid if skip_invalid is None else skip_invalid
        rows = self.validate_rows()
        valid_rows = [row for row in rows if row.is_valid]
        invalid_count = len(rows) - len(valid_rows)

        if invalid_count and not skip_invalid:
            logger.warning("csv_commit_refused", invalid=invalid_count)
            raise InvalidRowsError(invalid_count)

        logger.info(
            "csv_commit_started",
            valid=len(valid_rows),
            skipped=invalid_count,
            concurrency=self._queue.concurrency,
        )

        jobs = [
            lambda draft=row.draft: storage.create_expense(draft.to_expense_input())
            for row in valid_rows
        ]
        outcomes = await self._queue.run(jobs, cancel_event=cancel_event)

        self._row_outcomes = [
            (row.row_number, outcome) for row, outcome in zip(valid_rows, outcomes)
        ]
        for row_number, outcome in self._row_outcomes:
            if outcome.status == TaskStatus.FAILED:
                logger.error(
                    "csv_row_commit_failed",
                    row_number=row_number,
                    error=outcome.error,
                )

        batch = summarize(outcomes)
        result = ImportResult(
            created=batch.created,
            failed=batch.failed,
            skipped=invalid_count,
            cancelled=batch.cancelled,
        )
        self._result = result
        self._step = ImportStep.DONE

        logger.info(
            "csv_commit_completed",
            created=result.created,
            failed=result.failed,
            skipped=result.skipped,
            cancelled=result.cancelled,
        )
        return result

    # -------------------------------------------------------------------------
    # RESET
    # -------------------------------------------------------------------------

    def reset(self) -> ImportStep:
        """Discard everything and go back to UPLOAD. Returns the step left."""
        previous = self._step
        self._clear()
        logger.info("csv_import_reset", from_step=previous.value)
        return previous
