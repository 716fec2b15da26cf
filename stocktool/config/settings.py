import os
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

DEFAULT_SYMBOLS = ["AAPL", "NVDA", "AMZN", "GOOG", "TSLA", "META"]
DEFAULT_SHELL_ASSETS = [
    "/",
    "/index.html",
    "https://cdn.tailwindcss.com",
    "https://cdn.jsdelivr.net/npm/apexcharts",
    "https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap",
]


def _split_csv(raw: str | None, default: list[str]) -> list[str]:
    if raw is None:
        return list(default)
    values = [s.strip() for s in raw.split(",") if s.strip()]
    return values or list(default)


class Settings(BaseModel):
    QUOTE_PROVIDER: Literal["finnhub", "alpha_vantage", "yahoo", "yahoo_scrape"] = "finnhub"
    QUOTE_SYMBOLS: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    FINNHUB_API_KEY: str | None = None
    ALPHA_VANTAGE_API_KEY: str | None = None
    QUOTE_INCLUDE_HISTORY: bool = True
    QUOTE_HISTORY_DAYS: int = Field(default=30, ge=1)
    QUOTE_CACHE_POLICY: Literal["shared", "no-store"] | None = None
    QUOTE_CACHE_MAX_AGE: int = Field(default=15, ge=0)
    QUOTE_DISPLAY_TZ: str = "America/New_York"
    UPSTREAM_TIMEOUT_SEC: float = Field(default=5.0, gt=0)
    UPSTREAM_MAX_CONCURRENCY: int = Field(default=8, ge=1)

    SHELL_CACHE_NAME: str = "stocktool-cache-v1"
    SHELL_ORIGIN: str = "http://localhost:8000"
    SHELL_ASSETS: list[str] = Field(default_factory=lambda: list(DEFAULT_SHELL_ASSETS))
    SHELL_API_PREFIX: str = "/v1/"
    SHELL_API_POLICY: Literal["no_fallback", "cache_bust"] = "no_fallback"
    SHELL_POPULATE_ON_MISS: bool = False
    SHELL_PRECACHE_ON_STARTUP: bool = True

    @field_validator("QUOTE_DISPLAY_TZ")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone: {value}") from exc
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        raw = {
            "QUOTE_PROVIDER": os.getenv("QUOTE_PROVIDER"),
            "QUOTE_SYMBOLS": _split_csv(os.getenv("QUOTE_SYMBOLS"), DEFAULT_SYMBOLS),
            "FINNHUB_API_KEY": os.getenv("FINNHUB_API_KEY"),
            "ALPHA_VANTAGE_API_KEY": os.getenv("ALPHA_VANTAGE_API_KEY"),
            "QUOTE_INCLUDE_HISTORY": os.getenv("QUOTE_INCLUDE_HISTORY"),
            "QUOTE_HISTORY_DAYS": os.getenv("QUOTE_HISTORY_DAYS"),
            "QUOTE_CACHE_POLICY": os.getenv("QUOTE_CACHE_POLICY"),
            "QUOTE_CACHE_MAX_AGE": os.getenv("QUOTE_CACHE_MAX_AGE"),
            "QUOTE_DISPLAY_TZ": os.getenv("QUOTE_DISPLAY_TZ"),
            "UPSTREAM_TIMEOUT_SEC": os.getenv("UPSTREAM_TIMEOUT_SEC"),
            "UPSTREAM_MAX_CONCURRENCY": os.getenv("UPSTREAM_MAX_CONCURRENCY"),
            "SHELL_CACHE_NAME": os.getenv("SHELL_CACHE_NAME"),
            "SHELL_ORIGIN": os.getenv("SHELL_ORIGIN"),
            "SHELL_ASSETS": _split_csv(os.getenv("SHELL_ASSETS"), DEFAULT_SHELL_ASSETS),
            "SHELL_API_PREFIX": os.getenv("SHELL_API_PREFIX"),
            "SHELL_API_POLICY": os.getenv("SHELL_API_POLICY"),
            "SHELL_POPULATE_ON_MISS": os.getenv("SHELL_POPULATE_ON_MISS"),
            "SHELL_PRECACHE_ON_STARTUP": os.getenv("SHELL_PRECACHE_ON_STARTUP"),
        }
        # unset or blank env keeps the field default
        return cls.model_validate({k: v for k, v in raw.items() if v not in (None, "")})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
