# backend/otc_desk/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/otc_desk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (postgresql+psycopg2://...)
        "sqlite:///otc_desk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Caller-side timeout for every store call (sqlite busy timeout / pg connect + pool wait)
    DB_TIMEOUT_SECONDS = float(os.environ.get("DB_TIMEOUT_SECONDS", "10"))

    # Shared secret for /api/admin/* (sent as X-Admin-Secret). Unset = admin API disabled.
    ADMIN_SECRET = os.environ.get("ADMIN_SECRET")

    # USD/ILS representative rate (Bank of Israel public XML feed)
    FX_RATE_URL = os.environ.get(
        "FX_RATE_URL",
        "https://www.boi.org.il/PublicApi/GetExchangeRates?asXml=true",
    )
    FX_CACHE_TTL_SECONDS = int(os.environ.get("FX_CACHE_TTL_SECONDS", "3600"))
    FX_TIMEOUT_SECONDS = float(os.environ.get("FX_TIMEOUT_SECONDS", "5"))

    # New-order notifications (Telegram). Both unset = notifications disabled.
    TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")
    TELEGRAM_API_URL = os.environ.get("TELEGRAM_API_URL", "https://api.telegram.org")
    NOTIFY_TIMEOUT_SECONDS = float(os.environ.get("NOTIFY_TIMEOUT_SECONDS", "5"))
    NOTIFY_ASYNC = _env_bool("NOTIFY_ASYNC", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
