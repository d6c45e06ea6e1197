"""Configuration package."""

from splitledger.config.settings import (
    AppSettings,
    CsvImportSettings,
    LedgerSettings,
    ReceiptSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CsvImportSettings",
    "LedgerSettings",
    "ReceiptSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
