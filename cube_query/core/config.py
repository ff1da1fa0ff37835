"""
Centralised plugin settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Data source ──────────────────────────────────────
    datasource_name: str = "Cube"
    datasource_uid: str = "cube"
    resource_base_url: str = "http://localhost:3000/api/datasources/uid/cube/resources"
    resource_timeout_seconds: float = 10.0

    # ── Dashboard integration ────────────────────────────
    time_dimension_variable: str = "cubeTimeDimension"

    # ── SQL preview cache ────────────────────────────────
    sql_cache_ttl_seconds: float = 300
    sql_cache_max_size: int = 256

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
