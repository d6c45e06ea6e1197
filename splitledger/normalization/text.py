"""
Text Normalization

Turns free-form money and date strings from spreadsheets and receipts
into canonical values: integer minor units and calendar dates.

DESIGN DECISION: Dates are parsed through an ORDERED list of stages and
the first stage that succeeds wins:

    (a) unambiguous calendar formats (ISO, month names)
    (b) month-first M/D/Y and M/D/YY
    (c) day-first D/M/Y, only when the first number cannot be a month

Receipts and spreadsheets from different locales disagree about 03/04/2025.
We resolve that month-first, and only read day-first when the numbers
make it unambiguous. A wrong guess silently corrupts financial history,
so anything that fits no stage is None rather than a best effort.

Neither function ever raises.
"""

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional


_MONEY_NOISE = re.compile(r"[^\d.,-]")
_CENTS = Decimal("100")

_CALENDAR_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%a, %d %b %Y",
)

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]")
_MONTH_FIRST = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})$")
_DAY_FIRST = re.compile(r"^(\d{1,2})([-/.])(\d{1,2})\2(\d{4}|\d{2})$")

# Two-digit years up to this value are 20xx, above it 19xx.
TWO_DIGIT_YEAR_PIVOT = 50


def money_to_minor_units(text) -> Optional[int]:
    """
    Convert money text to integer cents.

    "$1,234.50" -> 123450, "12" -> 1200, "abc" -> None.
    Commas are treated as thousands separators. Half-cents round up.
    """
    if text is None:
        return None

    cleaned = _MONEY_NOISE.sub("", str(text)).replace(",", "")
    if not cleaned:
        return None

    try:
        dollars = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not dollars.is_finite():
        return None

    return int((dollars * _CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _expand_year(year_text: str) -> int:
    year = int(year_text)
    if len(year_text) == 2:
        return 2000 + year if year <= TWO_DIGIT_YEAR_PIVOT else 1900 + year
    return year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_calendar(text: str) -> Optional[date]:
    """Stage (a): formats that cannot be misread."""
    for fmt in _CALENDAR_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    if _ISO_PREFIX.match(text):
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None

    return None


def _parse_month_first(text: str) -> Optional[date]:
    """Stage (b): M/D/Y and M/D/YY."""
    match = _MONTH_FIRST.match(text)
    if not match:
        return None
    month, day, year = match.groups()
    return _safe_date(_expand_year(year), int(month), int(day))


def _parse_day_first(text: str) -> Optional[date]:
    """Stage (c): D-M-Y / D/M/Y / D.M.Y when the first number exceeds 12."""
    match = _DAY_FIRST.match(text)
    if not match:
        return None
    day, _sep, month, year = match.groups()
    if int(day) <= 12:
        return None
    return _safe_date(_expand_year(year), int(month), int(day))


_DATE_STAGES = (_parse_calendar, _parse_month_first, _parse_day_first)


def parse_calendar_date(text) -> Optional[date]:
    """Parse free-form date text; the first stage that succeeds wins."""
    if text is None:
        return None

    cleaned = str(text).strip()
    if not cleaned:
        return None

    for stage in _DATE_STAGES:
        parsed = stage(cleaned)
        if parsed is not None:
            return parsed

    return None


def date_to_iso(text) -> Optional[str]:
    """
    Normalize date text to "YYYY-MM-DD".

    "12/09/25" -> "2025-12-09", "25/12/2025" -> "2025-12-25",
    "13/13/2025" -> None.
    """
    parsed = parse_calendar_date(text)
    return parsed.isoformat() if parsed else None
