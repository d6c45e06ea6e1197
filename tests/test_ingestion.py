"""Tests for CSV parsing, row validation and the import session."""

import asyncio
import pytest
from datetime import date

from splitledger.ingestion import (
    BoundedTaskQueue,
    CsvImportSession,
    CsvParseError,
    InvalidImportStepError,
    InvalidRowsError,
    MappingError,
    TaskOutcome,
    TaskStatus,
    detect_delimiter,
    guess_mapping,
    paid_by_from_text,
    parse_csv,
    summarize,
    validate_record,
)
from splitledger.models import (
    CsvColumnMapping,
    CsvField,
    ExpenseCategory,
    ImportStep,
    Party,
    PartnerNames,
    RowOverride,
)
from splitledger.services.storage import InMemoryLedgerStorage, StorageConnectionError


SIMPLE_CSV = 'description,amount,date\n"Dinner","$12.34","2025-01-02"\n'

MIXED_CSV = (
    "Date,Description,Amount,Category,Paid By\n"
    "2025-01-02,Dinner,$12.34,food,p2\n"
    "2025-01-03,,5.00,,\n"
    "2025-01-04,Groceries,abc,groceries,me\n"
    "2025-01-05,Taxi,20,transport,Partner 1\n"
)


class FlakyStorage(InMemoryLedgerStorage):
    """Fails the create call for chosen descriptions."""

    def __init__(self, failing_descriptions=()):
        super().__init__()
        self.failing_descriptions = set(failing_descriptions)
        self.create_calls = 0

    async def create_expense(self, expense):
        self.create_calls += 1
        if expense.description in self.failing_descriptions:
            raise StorageConnectionError(f"write failed for {expense.description}")
        return await super().create_expense(expense)


def session_at_preview(content, **kwargs):
    session = CsvImportSession(**kwargs)
    session.load(content)
    session.confirm_mapping()
    return session


class TestDetectDelimiter:

    def test_comma(self):
        assert detect_delimiter("a,b,c\n1,2,3") == ","

    def test_semicolon(self):
        assert detect_delimiter("a;b;c\n1;2;3") == ";"

    def test_tab_wins_ties(self):
        assert detect_delimiter("a\tb,c\n") == "\t"

    def test_skips_blank_leading_lines(self):
        assert detect_delimiter("\n\n  \na;b\n") == ";"

    def test_defaults_to_comma(self):
        assert detect_delimiter("") == ","


class TestParseCsv:
    """Parsing raw text into headers and records."""

    def test_simple(self):
        parsed = parse_csv(SIMPLE_CSV)
        assert parsed.headers == ["description", "amount", "date"]
        assert parsed.records == [{"description": "Dinner", "amount": "$12.34", "date": "2025-01-02"}]

    def test_quoted_fields(self):
        """Embedded delimiters, doubled quotes and newlines survive."""
        parsed = parse_csv('name,note\n"Smith, J","He said ""hi""\nthen left"\n')
        assert parsed.records[0]["name"] == "Smith, J"
        assert parsed.records[0]["note"] == 'He said "hi"\nthen left'

    def test_bom_and_crlf(self):
        parsed = parse_csv("\ufeffdescription;amount\r\nLunch;5\r\n")
        assert parsed.delimiter == ";"
        assert parsed.headers == ["description", "amount"]
        assert parsed.records[0]["amount"] == "5"

    def test_blank_rows_dropped(self):
        parsed = parse_csv("a,b\n\n1,2\n , \n3,4\n")
        assert len(parsed.records) == 2

    def test_blank_headers_are_named(self):
        parsed = parse_csv(" a ,,c\n1,2,3\n")
        assert parsed.headers == ["a", "Column 2", "c"]
        assert parsed.records[0]["Column 2"] == "2"

    def test_repeated_headers_stay_addressable(self):
        """A second column with the same name does not overwrite the first."""
        parsed = parse_csv("description,amount,amount,date\nX,1,2,2025-01-02\n")
        assert parsed.headers == ["description", "amount", "amount (2)", "date"]
        assert parsed.records[0]["amount"] == "1"
        assert parsed.records[0]["amount (2)"] == "2"
        assert guess_mapping(parsed.headers).amount == "amount"

    def test_repeated_headers_avoid_existing_names(self):
        parsed = parse_csv("a,a (2),a\n1,2,3\n")
        assert parsed.headers == ["a", "a (2)", "a (3)"]

    def test_short_rows_fill_with_empty(self):
        parsed = parse_csv("a,b,c\n1\n")
        assert parsed.records[0] == {"a": "1", "b": "", "c": ""}

    @pytest.mark.parametrize("text", ["", "   \n\n"])
    def test_no_header_is_fatal(self, text):
        with pytest.raises(CsvParseError):
            parse_csv(text)


class TestGuessMapping:

    def test_exact_headers(self):
        mapping = guess_mapping(["Date", "Description", "Amount", "Category", "Paid By", "Notes"])
        assert mapping == CsvColumnMapping(
            description="Description",
            amount="Amount",
            date="Date",
            category="Category",
            paid_by="Paid By",
            note="Notes",
        )

    def test_loose_matches(self):
        mapping = guess_mapping(["Transaction Date", "Merchant Name", "Total Amount (USD)"])
        assert mapping.date == "Transaction Date"
        assert mapping.description == "Merchant Name"
        assert mapping.amount == "Total Amount (USD)"
        assert mapping.note is None

    def test_priority_order(self):
        """'description' is preferred over 'name' even when both exist."""
        mapping = guess_mapping(["Name", "Description"])
        assert mapping.description == "Description"


class TestPaidByFromText:

    PARTNERS = PartnerNames(party_a_name="Alex", party_b_name="Sam")

    @pytest.mark.parametrize("text,expected", [
        ("p2", Party.PARTY_B),
        ("Partner 2", Party.PARTY_B),
        ("2", Party.PARTY_B),
        ("P1", Party.PARTY_A),
        ("sam", Party.PARTY_B),
        ("Paid by Alex", Party.PARTY_A),
        ("my wife", Party.PARTY_B),
        ("husband", Party.PARTY_A),
        ("", Party.PARTY_A),
        ("someone else", Party.PARTY_A),
    ])
    def test_heuristic(self, text, expected):
        assert paid_by_from_text(text, self.PARTNERS) == expected

    def test_pronouns_match_whole_words(self):
        """'other' contains 'her' but is not a pronoun."""
        assert paid_by_from_text("other", self.PARTNERS) == Party.PARTY_A

    @pytest.mark.parametrize("text,expected", [
        ("Joanna", Party.PARTY_A),
        ("Ann", Party.PARTY_B),
        ("paid by Joanna", Party.PARTY_A),
        ("Ann's card", Party.PARTY_B),
    ])
    def test_name_inside_other_name(self, text, expected):
        """A short partner name contained in the other's name does not win."""
        partners = PartnerNames(party_a_name="Joanna", party_b_name="Ann")
        assert paid_by_from_text(text, partners) == expected


class TestValidateRecord:
    """One record to a draft or a list of errors."""

    MAPPING = CsvColumnMapping(
        description="desc",
        amount="amt",
        date="when",
        category="cat",
        paid_by="who",
        note="memo",
    )

    def test_valid_record(self):
        errors, draft = validate_record(
            {"desc": "Dinner", "amt": "$12.34", "when": "2025-01-02", "cat": "Food", "who": "p2", "memo": "birthday"},
            self.MAPPING,
        )
        assert errors == []
        assert draft.amount_minor_units == 1234
        assert draft.date == date(2025, 1, 2)
        assert draft.category == ExpenseCategory.FOOD
        assert draft.paid_by == Party.PARTY_B
        assert draft.note == "birthday"

    def test_all_errors_collected(self):
        errors, draft = validate_record({"desc": " ", "amt": "-5", "when": "soon"}, self.MAPPING)
        assert draft is None
        assert errors == ["Missing description", "Invalid amount", "Invalid date"]

    def test_unknown_category_is_other(self):
        _, draft = validate_record(
            {"desc": "Thing", "amt": "1", "when": "2025-01-02", "cat": "???"},
            self.MAPPING,
        )
        assert draft.category == ExpenseCategory.OTHER
        assert draft.paid_by == Party.PARTY_A
        assert draft.note is None

    def test_override_wins(self):
        _, draft = validate_record(
            {"desc": "Thing", "amt": "1", "when": "2025-01-02", "cat": "food", "who": "p1"},
            self.MAPPING,
            override=RowOverride(paid_by=Party.PARTY_B, category=ExpenseCategory.GIFTS),
        )
        assert draft.paid_by == Party.PARTY_B
        assert draft.category == ExpenseCategory.GIFTS


class TestBoundedTaskQueue:

    @pytest.mark.asyncio
    async def test_failures_are_isolated_and_ordered(self):
        async def ok(value):
            return value

        async def boom():
            raise ValueError("boom")

        queue = BoundedTaskQueue(concurrency=2)
        outcomes = await queue.run([
            lambda: ok(1),
            boom,
            lambda: ok(3),
        ])
        assert [o.status for o in outcomes] == [
            TaskStatus.SUCCEEDED,
            TaskStatus.FAILED,
            TaskStatus.SUCCEEDED,
        ]
        assert outcomes[2].result == 3
        assert outcomes[1].error == "boom"

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        running = 0
        peak = 0

        async def job():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1

        await BoundedTaskQueue(concurrency=2).run([job] * 6)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_cancel_event_stops_unstarted_jobs(self):
        cancel = asyncio.Event()
        started = []

        def make_job(index):
            async def job():
                started.append(index)
                if index == 1:
                    cancel.set()
                return index
            return job

        outcomes = await BoundedTaskQueue(concurrency=1).run(
            [make_job(i) for i in range(4)],
            cancel_event=cancel,
        )
        assert started == [0, 1]
        assert [o.status for o in outcomes] == [
            TaskStatus.SUCCEEDED,
            TaskStatus.SUCCEEDED,
            TaskStatus.CANCELLED,
            TaskStatus.CANCELLED,
        ]

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            BoundedTaskQueue(concurrency=0)


class TestCsvImportSession:
    """The upload -> map -> preview -> done state machine."""

    def test_load_guesses_mapping(self):
        session = CsvImportSession()
        session.load(SIMPLE_CSV, filename="export.csv")
        assert session.step == ImportStep.MAP
        assert session.mapping.amount == "amount"
        assert session.filename == "export.csv"

    def test_load_accepts_bytes(self):
        session = CsvImportSession()
        parsed = session.load(SIMPLE_CSV.encode("utf-8-sig"))
        assert parsed.headers[0] == "description"

    def test_parse_failure_stays_at_upload(self):
        session = CsvImportSession()
        with pytest.raises(CsvParseError):
            session.load("")
        assert session.step == ImportStep.UPLOAD

    def test_missing_required_mapping(self):
        session = CsvImportSession()
        session.load("what,when\nDinner,2025-01-02\n")
        session.update_mapping(CsvField.AMOUNT, None)
        with pytest.raises(MappingError) as exc_info:
            session.confirm_mapping()
        assert exc_info.value.field_errors == {"amount": "Required"}
        assert session.step == ImportStep.MAP

    def test_unknown_column_is_rejected(self):
        session = CsvImportSession()
        session.load(SIMPLE_CSV)
        with pytest.raises(MappingError):
            session.update_mapping(CsvField.NOTE, "nope")

    def test_out_of_order_calls(self):
        session = CsvImportSession()
        with pytest.raises(InvalidImportStepError):
            session.confirm_mapping()
        with pytest.raises(InvalidImportStepError):
            session.preview()

    def test_round_trip_single_row(self):
        session = session_at_preview(SIMPLE_CSV)
        preview = session.preview()
        assert (preview.total, preview.valid, preview.invalid) == (1, 1, 0)
        draft = preview.rows[0].draft
        assert draft.description == "Dinner"
        assert draft.amount_minor_units == 1234
        assert draft.date == date(2025, 1, 2)

    def test_preview_counts_cover_all_rows(self):
        session = session_at_preview(MIXED_CSV)
        preview = session.preview(limit=1)
        assert len(preview.rows) == 1
        assert (preview.total, preview.valid, preview.invalid) == (4, 2, 2)

    def test_preview_row_limit_from_settings(self):
        content = "description,amount,date\n" + "".join(
            f"Item {i},1.00,2025-01-02\n" for i in range(300)
        )
        preview = session_at_preview(content).preview()
        assert len(preview.rows) == 250
        assert preview.total == 300

    def test_row_override(self):
        session = session_at_preview(MIXED_CSV)
        session.set_row_override(1, paid_by=Party.PARTY_A)
        session.set_row_override(1, category=ExpenseCategory.GIFTS)
        draft = session.preview().rows[0].draft
        assert draft.paid_by == Party.PARTY_A
        assert draft.category == ExpenseCategory.GIFTS

        session.clear_row_override(1)
        draft = session.preview().rows[0].draft
        assert draft.paid_by == Party.PARTY_B
        assert draft.category == ExpenseCategory.FOOD

    def test_override_unknown_row(self):
        session = session_at_preview(SIMPLE_CSV)
        with pytest.raises(ValueError):
            session.set_row_override(5, paid_by=Party.PARTY_B)

    @pytest.mark.asyncio
    async def test_commit_refused_before_any_write(self):
        storage = FlakyStorage()
        session = session_at_preview(MIXED_CSV)
        with pytest.raises(InvalidRowsError) as exc_info:
            await session.commit(storage, skip_invalid=False)
        assert exc_info.value.invalid_count == 2
        assert storage.create_calls == 0
        assert session.step == ImportStep.PREVIEW

    @pytest.mark.asyncio
    async def test_commit_skips_invalid_rows(self):
        storage = FlakyStorage()
        session = session_at_preview(MIXED_CSV)
        result = await session.commit(storage, skip_invalid=True)
        assert (result.created, result.failed, result.skipped) == (2, 0, 2)
        assert result.total == 4
        assert session.step == ImportStep.DONE

        expenses = await storage.list_expenses()
        assert [e.description for e in expenses] == ["Dinner", "Taxi"]
        assert expenses[0].paid_by == Party.PARTY_B
        assert expenses[1].paid_by == Party.PARTY_A

    @pytest.mark.asyncio
    async def test_one_failing_write_does_not_stop_the_batch(self):
        content = "description,amount,date\n" + "".join(
            f"Item {i},{i + 1}.00,2025-01-02\n" for i in range(5)
        )
        storage = FlakyStorage(failing_descriptions={"Item 2"})
        session = session_at_preview(content)

        result = await session.commit(storage)

        assert (result.created, result.failed) == (4, 1)
        assert storage.create_calls == 5
        descriptions = [e.description for e in await storage.list_expenses()]
        assert descriptions == ["Item 0", "Item 1", "Item 3", "Item 4"]
        failed = [n for n, o in session.row_outcomes if o.status == TaskStatus.FAILED]
        assert failed == [3]

    @pytest.mark.asyncio
    async def test_commit_only_once(self):
        session = session_at_preview(SIMPLE_CSV)
        await session.commit(InMemoryLedgerStorage())
        with pytest.raises(InvalidImportStepError):
            await session.commit(InMemoryLedgerStorage())

    @pytest.mark.asyncio
    async def test_cancelled_commit(self):
        cancel = asyncio.Event()
        cancel.set()
        session = session_at_preview(SIMPLE_CSV)
        result = await session.commit(InMemoryLedgerStorage(), cancel_event=cancel)
        assert (result.created, result.cancelled) == (0, 1)

    def test_reset_from_any_step(self):
        session = session_at_preview(SIMPLE_CSV)
        assert session.reset() == ImportStep.PREVIEW
        assert session.step == ImportStep.UPLOAD
        assert session.parsed is None
        session.load(SIMPLE_CSV)
        assert session.step == ImportStep.MAP


class TestSummarize:

    def test_counts_by_status(self):
        batch = summarize([
            TaskOutcome(index=0, status=TaskStatus.SUCCEEDED),
            TaskOutcome(index=1, status=TaskStatus.FAILED, error="x"),
            TaskOutcome(index=2, status=TaskStatus.SUCCEEDED),
            TaskOutcome(index=3, status=TaskStatus.CANCELLED),
        ])
        assert (batch.created, batch.failed, batch.cancelled) == (2, 1, 1)
