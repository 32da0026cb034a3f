from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DEDUP_WINDOW_HOURS = 24
DEFAULT_VARIANCE_THRESHOLD_PCT = 20.0


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def get_database_url() -> str:
    database_url = os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL")
    if not database_url:
        raise RuntimeError(
            "DATABASE_URL or SQLALCHEMY_DATABASE_URL must be set to create the database engine."
        )
    return database_url


def dedup_window_hours() -> float:
    return _float_env("NOTIFICATION_DEDUP_WINDOW_HOURS", DEFAULT_DEDUP_WINDOW_HOURS)


def variance_threshold_pct() -> float:
    return _float_env("VARIANCE_ALERT_THRESHOLD_PCT", DEFAULT_VARIANCE_THRESHOLD_PCT)


def currency_symbol() -> str:
    return os.getenv("CURRENCY_SYMBOL") or "R$"


def cors_origins_raw() -> str | None:
    return os.getenv("CORS_ALLOW_ORIGINS")
