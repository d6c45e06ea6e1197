"""
Configuration Management for Split Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Thresholds that shape user-visible behavior (preview size, confidence
cut-off, settle-up minimum) live here rather than as magic numbers.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger and balance configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    party_a_name: str = Field(
        default="Partner 1",
        description="Display name of party A"
    )
    party_b_name: str = Field(
        default="Partner 2",
        description="Display name of party B"
    )
    settle_up_minimum_minor_units: int = Field(
        default=100,
        ge=0,
        description="Balances below this are not worth settling"
    )
    max_expense_minor_units: int = Field(
        default=1_000_000,
        ge=1,
        description="Amounts above this are flagged as suspicious"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future an expense date can be"
    )


class CsvImportSettings(BaseSettings):
    """Spreadsheet import configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CSV_IMPORT_",
        extra="ignore"
    )

    preview_row_limit: int = Field(
        default=250,
        ge=1,
        description="Maximum number of rows returned for preview display"
    )
    skip_invalid_rows: bool = Field(
        default=True,
        description="Commit valid rows even if some rows are invalid"
    )
    commit_concurrency: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Number of create calls in flight during commit"
    )


class ReceiptSettings(BaseSettings):
    """Receipt scanning configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RECEIPT_",
        extra="ignore"
    )

    low_confidence_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Extractions below this need human confirmation"
    )
    analyzer_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts against the document-analysis service"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console rendering otherwise)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept standard logging level names."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def csv_import(self) -> CsvImportSettings:
        return CsvImportSettings()

    @property
    def receipt(self) -> ReceiptSettings:
        return ReceiptSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for each section that failed to load.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "csv_import", "receipt", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
