"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Transaction Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = os.getenv("LOG_JSON", "true").lower() == "true"

    # Money movement
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "USD")
    MAX_CONFLICT_RETRIES: int = int(os.getenv("MAX_CONFLICT_RETRIES", "3"))

    # Interest and fees
    MIN_BALANCE_FOR_INTEREST: Decimal = Decimal(
        os.getenv("MIN_BALANCE_FOR_INTEREST", "100.00")
    )
    MAINTENANCE_FEE: Decimal = Decimal(os.getenv("MAINTENANCE_FEE", "1.00"))
    MAINTENANCE_FEE_THRESHOLD: Decimal = Decimal(
        os.getenv("MAINTENANCE_FEE_THRESHOLD", "500.00")
    )

    # Scheduler cadences (UTC)
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "false").lower() == "true"
    SCHEDULER_TICK_SECONDS: int = int(os.getenv("SCHEDULER_TICK_SECONDS", "30"))
    SCHEDULED_SWEEP_MINUTES: int = int(os.getenv("SCHEDULED_SWEEP_MINUTES", "5"))
    INTEREST_HOUR: int = int(os.getenv("INTEREST_HOUR", "2"))
    RECONCILIATION_HOUR: int = int(os.getenv("RECONCILIATION_HOUR", "1"))
    WEEKLY_REPORT_WEEKDAY: int = int(os.getenv("WEEKLY_REPORT_WEEKDAY", "0"))
    WEEKLY_REPORT_HOUR: int = int(os.getenv("WEEKLY_REPORT_HOUR", "6"))
    MONTHLY_REPORT_DAY: int = int(os.getenv("MONTHLY_REPORT_DAY", "1"))
    MONTHLY_REPORT_HOUR: int = int(os.getenv("MONTHLY_REPORT_HOUR", "5"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()
