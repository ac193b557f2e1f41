"""
Configuration Management for MoneyBook

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here, so the external dependencies
(storage backend, spreadsheet, thresholds) are visible in one place and
validated when first used.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Where the ledger spreadsheet lives and what its worksheets are called."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file with access to the ledger spreadsheet"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet that holds the ledger worksheets"
    )

    # One worksheet per table
    accounts_sheet_name: str = Field(default="Accounts")
    categories_sheet_name: str = Field(default="Categories")
    transactions_sheet_name: str = Field(default="Transactions")
    loans_sheet_name: str = Field(default="Loans")
    budgets_sheet_name: str = Field(default="Budgets")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet for the append-only audit trail"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; the memory backend needs none."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key not found at {v}; "
                "the Google Sheets backend will fail to connect without it."
            )
        return v


class AppSettings(BaseSettings):
    """
    Ledger behaviour: which backend holds the books, how amounts are shown,
    and the thresholds the validator uses. Read from the environment and .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Show extra diagnostics on the settings page"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for the structured log"
    )

    # Storage
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage backend to use"
    )

    # Display
    currency_symbol: str = Field(
        default="₹",
        max_length=5,
        description="Symbol shown in front of amounts"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=10000000.0,
        gt=0,
        description="Amounts above this are flagged for review"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a transaction date can be"
    )

    # Seeding
    default_categories: str = Field(
        default="transport,food,gym,electronics,family,relationship,clothing",
        description="Comma-separated list of categories created for new users"
    )
    default_category_icon: str = Field(default="🏷️")

    @property
    def default_categories_list(self) -> list[str]:
        """Get default categories as a list."""
        return [name.strip() for name in self.default_categories.split(",") if name.strip()]


class Settings(BaseSettings):
    """Groups the sections above; each one is read from the environment on access."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the app runs with partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; get_settings.cache_clear() picks up a changed environment."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try loading each section.

    Returns {"app": bool, "google_sheets": bool} plus an "<section>_error"
    message for every section that failed. The settings page shows this.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
