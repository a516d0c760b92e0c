# backend/config.py
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

SearchProvider = Literal["firecrawl", "serpapi"]


def env_int(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def env_float(name: str, default: float, *, min_value: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if min_value is not None:
        value = max(min_value, value)
    return value


class Settings(BaseModel):
    firecrawl_api_key: Optional[str] = None
    firecrawl_api_url: str = "https://api.firecrawl.dev"
    search_provider: SearchProvider = "firecrawl"
    serpapi_api_key: Optional[str] = None

    database_url: str = "sqlite:///./dealfinder.db"

    extraction_timeout_ms: int = Field(30000, ge=1)
    search_timeout_ms: int = Field(20000, ge=1)
    slow_extraction_warning_s: float = Field(30.0, gt=0)

    retry_max_retries: int = Field(3, ge=0)
    retry_base_delay_ms: int = Field(1000, gt=0)
    retry_max_delay_ms: int = Field(10000, gt=0)
    retry_backoff_multiplier: float = Field(2.0, gt=1)

    log_level: str = "INFO"


def _load_dotenv():
    # Never clobber variables already injected by the environment (CI, containers).
    load_dotenv(override=False)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


@lru_cache()
def get_settings() -> Settings:
    _load_dotenv()
    provider = (os.getenv("SEARCH_PROVIDER") or "firecrawl").strip().lower()
    if provider not in ("firecrawl", "serpapi"):
        provider = "firecrawl"

    return Settings(
        firecrawl_api_key=_blank_to_none(os.getenv("FIRECRAWL_API_KEY")),
        firecrawl_api_url=os.getenv("FIRECRAWL_API_URL") or "https://api.firecrawl.dev",
        search_provider=provider,
        serpapi_api_key=_blank_to_none(os.getenv("SERPAPI_API_KEY") or os.getenv("SERP_API_KEY")),
        database_url=os.getenv("DATABASE_URL") or "sqlite:///./dealfinder.db",
        extraction_timeout_ms=env_int("EXTRACTION_TIMEOUT_MS", 30000, min_value=5000, max_value=60000),
        search_timeout_ms=env_int("SEARCH_TIMEOUT_MS", 20000, min_value=5000, max_value=60000),
        slow_extraction_warning_s=env_float("SLOW_EXTRACTION_WARNING_S", 30.0, min_value=1.0),
        retry_max_retries=env_int("RETRY_MAX_RETRIES", 3, min_value=0, max_value=10),
        retry_base_delay_ms=env_int("RETRY_BASE_DELAY_MS", 1000, min_value=1),
        retry_max_delay_ms=env_int("RETRY_MAX_DELAY_MS", 10000, min_value=1),
        retry_backoff_multiplier=env_float("RETRY_BACKOFF_MULTIPLIER", 2.0, min_value=1.01),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
