# backend/adminku/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # SQLite DB stored in backend/instance/adminku.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///adminku.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fallback when the `max_category_depth` row is missing from the config table
    MAX_CATEGORY_DEPTH = _env_int("MAX_CATEGORY_DEPTH", 5)

    # Generated barcodes look like BE-00000042
    BARCODE_PREFIX = os.environ.get("BARCODE_PREFIX", "BE-")
    BARCODE_DIGITS = 8

    CATEGORY_SEARCH_LIMIT = 20
    MAX_CONVERSION_FACTOR = 1_000_000
