from __future__ import annotations

from stocktool.errors import UpstreamError, UpstreamNoDataError, UpstreamPayloadError
from stocktool.integrations.base import BROWSER_USER_AGENT, QuoteProvider, format_trade_time, to_float
from stocktool.schemas.quote import QuoteSuccess


class YahooRestClient(QuoteProvider):
    """Unofficial Yahoo Finance v6 quote endpoint.

    No key required, but the endpoint rejects requests without a browser-like
    User-Agent and may change without notice. It carries no history.
    """

    name = "yahoo"
    label = "Yahoo Finance"
    default_cache_policy = "no-store"
    base_url = "https://query2.finance.yahoo.com/v6/finance/quote"

    def fetch_quote(self, symbol: str) -> QuoteSuccess:
        payload = self._get_json(
            self.base_url,
            params={"symbols": symbol},
            headers={"User-Agent": BROWSER_USER_AGENT},
        )
        quote_response = payload.get("quoteResponse") if isinstance(payload, dict) else None
        if not isinstance(quote_response, dict):
            raise UpstreamPayloadError("Malformed response from Yahoo Finance.")

        error = quote_response.get("error")
        if error:
            description = error.get("description") if isinstance(error, dict) else None
            raise UpstreamError(description or "Yahoo Finance API returned an error.")

        rows = quote_response.get("result") or []
        stock = next((row for row in rows if str(row.get("symbol", "")).upper() == symbol.upper()), None)
        if stock is None or stock.get("regularMarketPrice") is None:
            raise UpstreamNoDataError("Data not available from source.")

        return QuoteSuccess(
            symbol=symbol,
            price=self._require_price(stock.get("regularMarketPrice"), "Data not available from source."),
            change_amount=to_float(stock.get("regularMarketChange"), 0.0),
            change_percent=to_float(stock.get("regularMarketChangePercent"), 0.0),
            open=to_float(stock.get("regularMarketOpen")),
            high=to_float(stock.get("regularMarketDayHigh")),
            low=to_float(stock.get("regularMarketDayLow")),
            prev_close=to_float(stock.get("regularMarketPreviousClose")),
            last_trade_time=format_trade_time(stock.get("regularMarketTime"), self.display_tz),
        )
