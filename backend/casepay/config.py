"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "Case Filing Payments API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'casepay.db'}"

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]

    # --- Cases ---
    CASE_NUMBER_PREFIX: str = "CASE"
    FILING_FEE_HIGH: int = 100000       # paise, criminal / commercial / cybercrime
    FILING_FEE_STANDARD: int = 50000    # paise, everything else

    # --- Payment Gateway ---
    GATEWAY_MODE: str = "razorpay"      # razorpay | sandbox
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    DEFAULT_CURRENCY: str = "INR"
    SUPPORTED_CURRENCIES: list[str] = ["INR"]

    # --- Throttling ---
    CREATE_ORDER_RATE_LIMIT: int = 5
    CREATE_ORDER_RATE_WINDOW: int = 60

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
