# backend/kashpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kashpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kashpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar used for day/month bucketing and the YY-MM number prefix.
    # Stored timestamps stay UTC-naive regardless.
    BUSINESS_TIMEZONE = os.environ.get("KASHPOS_TIMEZONE", "UTC")

    # Seconds a completed sale can still be voided from the register
    RECENT_SALE_WINDOW_SECONDS = int(os.environ.get("KASHPOS_RECENT_SALE_WINDOW", "60"))

    # Live earnings view refresh interval
    LIVE_REFRESH_SECONDS = int(os.environ.get("KASHPOS_LIVE_REFRESH", "30"))

    # Register front-ends allowed to call the API from the browser
    CORS_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "KASHPOS_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )
