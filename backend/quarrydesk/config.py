# backend/quarrydesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/quarrydesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///quarrydesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Dashboard polling absorber; 0 disables the cache
    ANALYTICS_CACHE_TTL_SECONDS = int(os.environ.get("ANALYTICS_CACHE_TTL_SECONDS", "120"))

    # What a single-day report stores as the day's closing balance:
    # "net_income" or "cash_in_hand" (net income minus banked cash)
    CLOSING_BALANCE_BASIS = os.environ.get("CLOSING_BALANCE_BASIS", "net_income")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
