from __future__ import annotations

import os


class Config:
    DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
    DEFAULT_ROUNDING_RULE = os.getenv("DEFAULT_ROUNDING_RULE", "ceil").strip().lower()
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").strip()
