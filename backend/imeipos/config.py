# backend/imeipos/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///imeipos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds the driver waits on a locked database before raising
    STORE_TIMEOUT_SECONDS = _float_env("STORE_TIMEOUT_SECONDS", 15.0)

    # Atomic unit retry policy (store conflicts only, never domain errors)
    ATOMIC_UNIT_MAX_ATTEMPTS = _int_env("ATOMIC_UNIT_MAX_ATTEMPTS", 3)
    ATOMIC_UNIT_BACKOFF_BASE = _float_env("ATOMIC_UNIT_BACKOFF_BASE", 0.1)

    DEFAULT_LOCATION = os.environ.get("DEFAULT_LOCATION", "Main Store")
    DEFAULT_CONDITION = "new"
    DEFAULT_WARRANTY_MONTHS = _int_env("DEFAULT_WARRANTY_MONTHS", 12)
    CURRENCY = os.environ.get("CURRENCY", "VND")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
