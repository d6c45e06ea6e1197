"""Text normalization package."""

from splitledger.normalization.text import (
    date_to_iso,
    money_to_minor_units,
    parse_calendar_date,
)

__all__ = [
    "date_to_iso",
    "money_to_minor_units",
    "parse_calendar_date",
]
