"""
CSV Parsing and Column Mapping

Reads exported bank or spreadsheet text into headers and records, and
guesses which columns hold which expense fields.

Parsing is done by the standard library csv reader, which handles quoted
fields with embedded delimiters and newlines, and doubled quotes.
"""

import csv
import io
import re
from typing import Iterable, Optional

from splitledger.ingestion.errors import CsvParseError
from splitledger.models.ingestion import CsvColumnMapping, CsvField, ParsedCsv


_BOM = "\ufeff"
_HEADER_NON_ALNUM = re.compile(r"[^a-z0-9]+")

SUPPORTED_DELIMITERS = (",", ";", "\t")

# Candidate header names per field, in priority order.
MAPPING_CANDIDATES: dict[CsvField, tuple[str, ...]] = {
    CsvField.DESCRIPTION: ("description", "merchant", "name", "what", "item", "vendor"),
    CsvField.AMOUNT: ("amount", "total", "price", "cost", "value"),
    CsvField.DATE: ("date", "when", "time", "purchased", "purchase date", "transaction date"),
    CsvField.CATEGORY: ("category", "type"),
    CsvField.PAID_BY: ("paid by", "payer", "paid", "who", "owner"),
    CsvField.NOTE: ("note", "notes", "memo", "comment", "details"),
}


def detect_delimiter(text: str) -> str:
    """
    Guess the delimiter from the first non-blank line.

    Tabs win when present and at least as frequent as the others,
    then commas, then semicolons. Defaults to comma.
    """
    first_line = next(
        (line for line in (text or "").splitlines() if line.strip()),
        "",
    )
    commas = first_line.count(",")
    semicolons = first_line.count(";")
    tabs = first_line.count("\t")

    if tabs > 0 and tabs >= commas and tabs >= semicolons:
        return "\t"
    if commas >= semicolons:
        return ","
    return ";"


def _read_rows(text: str, delimiter: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    try:
        return [
            row for row in reader
            if any(cell.strip() for cell in row)
        ]
    except csv.Error as e:
        raise CsvParseError(f"Could not read CSV: {e}") from e


def _unique_headers(headers: list[str]) -> list[str]:
    """Suffix repeated names ("amount", "amount (2)") so every column stays addressable."""
    seen = set(headers)
    counts: dict[str, int] = {}
    unique = []
    for header in headers:
        if header not in counts:
            counts[header] = 1
            unique.append(header)
            continue
        while True:
            counts[header] += 1
            candidate = f"{header} ({counts[header]})"
            if candidate not in seen:
                break
        seen.add(candidate)
        unique.append(candidate)
    return unique


def parse_csv(text: str, delimiter: Optional[str] = None) -> ParsedCsv:
    """
    Parse CSV text into headers, raw rows and header-keyed records.

    Blank rows are dropped. Header cells are trimmed and blank ones are
    named "Column N"; repeated names get a " (2)", " (3)" suffix. Record
    cells are trimmed; missing cells are "".

    Raises:
        CsvParseError: If the text has no header row
    """
    text = text or ""
    if text.startswith(_BOM):
        text = text[len(_BOM):]

    delimiter = delimiter or detect_delimiter(text)
    if delimiter not in SUPPORTED_DELIMITERS:
        raise CsvParseError(f"Unsupported delimiter: {delimiter!r}")

    all_rows = _read_rows(text, delimiter)
    if not all_rows:
        raise CsvParseError("The file has no header row")

    headers = _unique_headers([
        cell.strip() or f"Column {index + 1}"
        for index, cell in enumerate(all_rows[0])
    ])
    rows = all_rows[1:]

    records = []
    for row in rows:
        record = {}
        for index, header in enumerate(headers):
            record[header] = row[index].strip() if index < len(row) else ""
        records.append(record)

    return ParsedCsv(
        delimiter=delimiter,
        headers=headers,
        rows=rows,
        records=records,
    )


def normalize_header(header: str) -> str:
    """Lowercase, with runs of non-alphanumerics collapsed to one space."""
    return _HEADER_NON_ALNUM.sub(" ", str(header or "").strip().lower()).strip()


def _pick_column(
    normalized_headers: dict[str, str],
    candidates: Iterable[str],
) -> Optional[str]:
    candidates = [normalize_header(c) for c in candidates]

    for candidate in candidates:
        if candidate in normalized_headers:
            return normalized_headers[candidate]

    for candidate in candidates:
        for normalized, header in normalized_headers.items():
            if normalized and (candidate in normalized or normalized in candidate):
                return header

    return None


def guess_mapping(headers: Iterable[str]) -> CsvColumnMapping:
    """
    Guess a column for every expense field from the header names.

    Exact normalized matches are tried first, then loose substring
    matches in either direction. The user confirms or edits the guess.
    """
    normalized_headers: dict[str, str] = {}
    for header in headers:
        normalized_headers[normalize_header(header)] = header

    return CsvColumnMapping(**{
        field.value: _pick_column(normalized_headers, candidates)
        for field, candidates in MAPPING_CANDIDATES.items()
    })
