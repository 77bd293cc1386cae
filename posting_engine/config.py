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
    APP_NAME: str = "Ledger Posting Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/posting_engine"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Posting rules
    VAT_STANDARD_RATE: Decimal = Decimal(os.getenv("VAT_STANDARD_RATE", "15"))
    SPLIT_TOLERANCE: Decimal = Decimal(os.getenv("SPLIT_TOLERANCE", "0.01"))
    BANK_LEDGER_CODE: str = os.getenv("BANK_LEDGER_CODE", "1100")
    SHORT_TERM_LOAN_MONTHS: int = int(os.getenv("SHORT_TERM_LOAN_MONTHS", "12"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for all
    subsequent calls.
    """
    return Settings()
