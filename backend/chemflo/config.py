# backend/chemflo/config.py
from __future__ import annotations
import os


def _origins(raw: str) -> set[str]:
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/chemflo.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///chemflo.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin frontend origins allowed by the CORS hook
    FRONTEND_ORIGINS = _origins(os.environ.get(
        "FRONTEND_URL",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Bounded retry for the stock mutation transaction
    STOCK_UPDATE_ATTEMPTS = int(os.environ.get("STOCK_UPDATE_ATTEMPTS", "3"))

    DASHBOARD_RECENT_MOVEMENTS = 10
