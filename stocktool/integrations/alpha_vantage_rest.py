from __future__ import annotations

from typing import Any, Dict, List

from stocktool.errors import UpstreamError, UpstreamNoDataError, UpstreamPayloadError, UpstreamRateLimitError
from stocktool.integrations.base import QuoteProvider, parse_percent, to_float
from stocktool.schemas.quote import QuoteSuccess


class AlphaVantageRestClient(QuoteProvider):
    """Alpha Vantage GLOBAL_QUOTE + TIME_SERIES_DAILY client.

    Free keys are limited to a handful of calls per minute; once exhausted the
    API answers 200 with a ``Note`` (or ``Information``) body instead of data.
    """

    name = "alpha_vantage"
    label = "Alpha Vantage"
    credential_setting = "ALPHA_VANTAGE_API_KEY"
    default_cache_policy = "shared"
    supports_history = True
    base_url = "https://www.alphavantage.co/query"

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = self._get_json(self.base_url, params={**params, "apikey": self.api_key})
        if not isinstance(payload, dict):
            raise UpstreamPayloadError("Malformed response from Alpha Vantage.")
        if payload.get("Error Message"):
            raise UpstreamError(str(payload["Error Message"]))
        for key in ("Note", "Information"):
            if payload.get(key):
                raise UpstreamRateLimitError(str(payload[key]))
        return payload

    def fetch_quote(self, symbol: str) -> QuoteSuccess:
        payload = self._request({"function": "GLOBAL_QUOTE", "symbol": symbol})
        data = payload.get("Global Quote") or {}
        if not data:
            raise UpstreamNoDataError("No quote data.")

        price = self._require_price(data.get("05. price"))
        return QuoteSuccess(
            symbol=symbol,
            price=price,
            change_amount=to_float(data.get("09. change"), 0.0),
            change_percent=parse_percent(data.get("10. change percent")) or 0.0,
            open=to_float(data.get("02. open")),
            high=to_float(data.get("03. high")),
            low=to_float(data.get("04. low")),
            prev_close=to_float(data.get("08. previous close")),
        )

    def fetch_history(self, symbol: str) -> List[float]:
        payload = self._request({"function": "TIME_SERIES_DAILY", "symbol": symbol, "outputsize": "compact"})
        series = payload.get("Time Series (Daily)") or {}
        closes: List[float] = []
        # ISO dates sort chronologically
        for day in sorted(series):
            close = to_float((series[day] or {}).get("4. close"))
            if close is not None:
                closes.append(close)
        return closes[-self.history_days:]
