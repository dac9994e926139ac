# backend/poscore/config.py
from __future__ import annotations
import os
from decimal import Decimal


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/poscore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///poscore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # VAT applied at display/export time only; stored totals are pre-tax
    TAX_RATE = Decimal(os.environ.get("POS_TAX_RATE", "0.12"))
    CURRENCY_SYMBOL = os.environ.get("POS_CURRENCY_SYMBOL", "₱")

    TOP_PRODUCTS_LIMIT = int(os.environ.get("POS_TOP_PRODUCTS_LIMIT", "10"))

    # Atomic-write retry policy (deadlocks, optimistic lock conflicts)
    COMMIT_RETRY_ATTEMPTS = int(os.environ.get("POS_COMMIT_RETRY_ATTEMPTS", "3"))
    COMMIT_RETRY_BACKOFF = float(os.environ.get("POS_COMMIT_RETRY_BACKOFF", "0.1"))

    SESSION_TTL_HOURS = int(os.environ.get("POS_SESSION_TTL_HOURS", "12"))
