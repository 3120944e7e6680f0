# backend/stockroom/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///stockroom.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("STOCKROOM_LOG_LEVEL", "INFO")

    # Outgoing goods are checked against current stock unless backorders are allowed
    ALLOW_NEGATIVE_OUTGOING = _env_flag("STOCKROOM_ALLOW_NEGATIVE_OUTGOING", False)

    # When set, only DRAFT transactions may be deleted
    DELETE_DRAFT_ONLY = _env_flag("STOCKROOM_DELETE_DRAFT_ONLY", False)

    # Re-roll cap for generated transaction numbers and SKUs
    NUMBER_MAX_ATTEMPTS = int(os.environ.get("STOCKROOM_NUMBER_MAX_ATTEMPTS", "10"))
