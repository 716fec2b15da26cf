from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup

from stocktool.errors import UpstreamNoDataError
from stocktool.integrations.base import BROWSER_USER_AGENT, QuoteProvider, parse_percent, to_float
from stocktool.schemas.quote import QuoteSuccess


class YahooScrapeClient(QuoteProvider):
    """Reads quote fields off the public Yahoo Finance quote page.

    The page renders live values as ``<fin-streamer data-symbol=... data-field=...>``
    elements; ``data-value`` holds the raw number when present.
    """

    name = "yahoo_scrape"
    label = "Yahoo Finance page"
    default_cache_policy = "no-store"
    base_url = "https://finance.yahoo.com/quote"

    @staticmethod
    def _field(soup: BeautifulSoup, symbol: str, field: str) -> Optional[str]:
        # the page also streams index tickers; only trust elements tagged with our symbol
        tag = soup.find("fin-streamer", attrs={"data-symbol": symbol, "data-field": field})
        if tag is None:
            return None
        return tag.get("data-value") or tag.get_text(strip=True)

    @staticmethod
    def _number(text: Optional[str]) -> Optional[float]:
        if text is None:
            return None
        return to_float(text.replace(",", "").replace("+", "").strip("()"))

    def fetch_quote(self, symbol: str) -> QuoteSuccess:
        response = self._get(f"{self.base_url}/{symbol}/", headers={"User-Agent": BROWSER_USER_AGENT})
        soup = BeautifulSoup(response.text, "html.parser")

        price = self._number(self._field(soup, symbol, "regularMarketPrice"))
        if price is None:
            raise UpstreamNoDataError("Data not available from source.")

        return QuoteSuccess(
            symbol=symbol,
            price=self._require_price(price, "Data not available from source."),
            change_amount=self._number(self._field(soup, symbol, "regularMarketChange")) or 0.0,
            change_percent=parse_percent(self._field(soup, symbol, "regularMarketChangePercent")) or 0.0,
            open=self._number(self._field(soup, symbol, "regularMarketOpen")),
            high=self._number(self._field(soup, symbol, "regularMarketDayHigh")),
            low=self._number(self._field(soup, symbol, "regularMarketDayLow")),
            prev_close=self._number(self._field(soup, symbol, "regularMarketPreviousClose")),
        )
