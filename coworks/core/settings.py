from __future__ import annotations

from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env at the project root wins over defaults
ENV_PATH = Path(__file__).resolve().parent.parent.parent / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)

class Settings(BaseSettings):
    # --- App ---
    APP_NAME: str = "Coworks"
    LOG_LEVEL: str = "INFO"

    # --- Auth ---
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./coworks.db"

    # ================= Razorpay =================
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    RAZORPAY_TIMEOUT_SECONDS: float = 10.0
    CURRENCY: str = "INR"
    # ============================================

    # --- Coins ---
    MAX_COINS: int = 1196
    COINS_HISTORY_LIMIT: int = 10

    # --- Background jobs ---
    # seconds between expired-booking sweeps, 0 disables the startup task
    BOOKING_CLEANUP_INTERVAL_SECONDS: int = 300

    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
