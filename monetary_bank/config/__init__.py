"""Configuration package."""

from monetary_bank.config.settings import (
    BankSettings,
    DemandInterestSettings,
    GoogleSheetsSettings,
    Settings,
    default_fixed_plans,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "BankSettings",
    "DemandInterestSettings",
    "GoogleSheetsSettings",
    "Settings",
    "default_fixed_plans",
    "get_settings",
    "validate_all_settings",
]
