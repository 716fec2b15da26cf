from __future__ import annotations

import time
from typing import Any, Dict, List

from stocktool.errors import UpstreamError, UpstreamPayloadError
from stocktool.integrations.base import QuoteProvider, format_trade_time, to_float
from stocktool.schemas.quote import HistoryPoint, QuoteSuccess


class FinnhubRestClient(QuoteProvider):
    """Finnhub quote + daily candle client."""

    name = "finnhub"
    label = "Finnhub"
    credential_setting = "FINNHUB_API_KEY"
    default_cache_policy = "shared"
    supports_history = True
    base_url = "https://finnhub.io/api/v1"

    def _request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = self._get_json(f"{self.base_url}{path}", params={**params, "token": self.api_key})
        if not isinstance(payload, dict):
            raise UpstreamPayloadError("Malformed response from Finnhub.")
        if payload.get("error"):
            raise UpstreamError(str(payload["error"]))
        return payload

    def fetch_quote(self, symbol: str) -> QuoteSuccess:
        # c=current d=change dp=change% o=open h=high l=low pc=prev close t=epoch sec
        data = self._request("/quote", {"symbol": symbol})
        price = self._require_price(data.get("c"))
        return QuoteSuccess(
            symbol=symbol,
            price=price,
            change_amount=to_float(data.get("d"), 0.0),
            change_percent=to_float(data.get("dp"), 0.0),
            open=to_float(data.get("o")),
            high=to_float(data.get("h")),
            low=to_float(data.get("l")),
            prev_close=to_float(data.get("pc")),
            last_trade_time=format_trade_time(data.get("t"), self.display_tz),
        )

    def fetch_history(self, symbol: str) -> List[HistoryPoint]:
        now = int(time.time())
        data = self._request(
            "/stock/candle",
            {
                "symbol": symbol,
                "resolution": "D",
                "from": now - self.history_days * 86400,
                "to": now,
            },
        )
        if data.get("s") != "ok":
            return []

        closes = data.get("c") or []
        stamps = data.get("t") or []
        points = [
            HistoryPoint(x=int(ts) * 1000, y=float(close))
            for ts, close in zip(stamps, closes)
            if close is not None
        ]
        points.sort(key=lambda p: p.x)
        return points
