from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import requests

from stocktool.errors import (
    MissingCredentialError,
    UpstreamNoDataError,
    UpstreamPayloadError,
    UpstreamRateLimitError,
)
from stocktool.schemas.quote import HistoryPoint, QuoteSuccess

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/58.0.3029.110 Safari/537.36"
)


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    try:
        if value is None or value == "":
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_percent(value: Any) -> Optional[float]:
    """Turn '1.23%', '(+1.23%)' or 1.23 into 1.23."""
    if isinstance(value, (int, float)):
        return float(value)
    if not value:
        return None
    text = str(value).strip().strip("()").replace("%", "").replace(",", "").strip()
    return to_float(text)


def format_trade_time(epoch_sec: Any, tz_name: str) -> Optional[str]:
    ts = to_float(epoch_sec)
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=ZoneInfo(tz_name)).strftime("%I:%M %p")


class QuoteProvider(ABC):
    """Upstream quote source. Adapters raise UpstreamError subclasses for
    anything the caller should see as a per-symbol failure."""

    name = ""
    label = ""
    credential_setting: Optional[str] = None
    default_cache_policy = "shared"
    supports_history = False

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        session: Optional[Any] = None,
        timeout_sec: float = 5.0,
        display_tz: str = "America/New_York",
        history_days: int = 30,
        base_url: Optional[str] = None,
    ) -> None:
        if self.credential_setting and not api_key:
            raise MissingCredentialError(self.label, self.credential_setting)
        self.api_key = api_key
        self.session = session or requests
        self.timeout_sec = timeout_sec
        self.display_tz = display_tz
        self.history_days = history_days
        if base_url is not None:
            self.base_url = base_url

    @abstractmethod
    def fetch_quote(self, symbol: str) -> QuoteSuccess:
        """Current quote for one symbol, without history."""

    def fetch_history(self, symbol: str) -> List[HistoryPoint] | List[float]:
        return []

    def _get(self, url: str, *, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None):
        response = self.session.get(url, params=params, headers=headers, timeout=self.timeout_sec)
        if getattr(response, "status_code", None) == 429:
            raise UpstreamRateLimitError(f"{self.label} rate limit reached.")
        response.raise_for_status()
        return response

    def _get_json(self, url: str, **kwargs: Any) -> Any:
        response = self._get(url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamPayloadError(f"Malformed response from {self.label}.") from exc

    @staticmethod
    def _require_price(value: Any, message: str = "No quote data.") -> float:
        price = to_float(value)
        # zero is the upstream "unknown symbol / no trades" sentinel
        if price is None or price == 0:
            raise UpstreamNoDataError(message)
        return price
