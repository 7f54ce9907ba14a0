"""
Configuration Management for the Bank Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger core receives already-validated values; nothing below the
orchestrator reads the environment.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from monetary_bank.models.deposit import InterestPlan, SettlementCycle


class DemandInterestSettings(BaseModel):
    """Interest paid on demand deposits."""

    enabled: bool = Field(
        default=True,
        description="Whether demand deposits accrue interest"
    )
    rate: Decimal = Field(
        default=Decimal("0.25"),
        ge=0,
        description="Demand interest rate (percent per cycle)"
    )
    cycle: SettlementCycle = Field(
        default=SettlementCycle.DAY,
        description="Demand settlement cycle"
    )


def default_fixed_plans() -> list[InterestPlan]:
    return [
        InterestPlan(name="Weekly Fixed", rate=Decimal("4.35"), cycle=SettlementCycle.WEEK),
        InterestPlan(name="Monthly Fixed", rate=Decimal("50"), cycle=SettlementCycle.MONTH),
    ]


class BankSettings(BaseSettings):
    """
    Ledger behaviour settings.

    Nested values can be set with a double underscore, e.g.
    MONETARY_BANK_DEMAND_INTEREST__RATE=0.5. The plan list is JSON:
    MONETARY_BANK_FIXED_INTEREST='[{"name": "Weekly", "rate": 4.35, "cycle": "week"}]'
    """

    model_config = SettingsConfigDict(
        env_prefix="MONETARY_BANK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )

    default_currency: str = Field(
        default="coin",
        min_length=1,
        description="Currency used when a command does not name one"
    )
    debug: bool = Field(
        default=True,
        description="Print info-level logs (warnings and errors always print)"
    )
    enable_interest: bool = Field(
        default=False,
        description="Enable fixed-term deposits and the daily settlement task"
    )
    demand_interest: DemandInterestSettings = Field(
        default_factory=DemandInterestSettings
    )
    fixed_interest: list[InterestPlan] = Field(
        default_factory=default_fixed_plans,
        description="Fixed-term plans, in display order"
    )

    @field_validator('fixed_interest')
    @classmethod
    def validate_unique_plan_names(cls, v: list[InterestPlan]) -> list[InterestPlan]:
        names = [plan.name for plan in v]
        if len(names) != len(set(names)):
            raise ValueError("Fixed-term plan names must be unique")
        return v

    def demand_terms(self) -> tuple[Decimal, SettlementCycle]:
        """Rate and cycle for new demand records. The rate is zero while demand interest is off."""
        rate = self.demand_interest.rate if self.demand_interest.enabled else Decimal(0)
        return rate, self.demand_interest.cycle

    def find_plan(self, name: str) -> Optional[InterestPlan]:
        """Look up a fixed-term plan by name (case-insensitive)."""
        wanted = name.strip().lower()
        for plan in self.fixed_interest:
            if plan.name.lower() == wanted:
                return plan
        return None

    def plan_by_number(self, number: int) -> Optional[InterestPlan]:
        """Look up a plan by its 1-based position in the menu."""
        if 1 <= number <= len(self.fixed_interest):
            return self.fixed_interest[number - 1]
        return None


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    deposits_sheet_name: str = Field(
        default="BankDeposits",
        description="Name of the sheet for deposit records"
    )
    cash_sheet_name: str = Field(
        default="Monetary",
        description="Name of the externally owned cash sheet"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def bank(self) -> BankSettings:
        return BankSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.bank
        results["bank"] = True
    except Exception as e:
        results["bank"] = False
        results["bank_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
