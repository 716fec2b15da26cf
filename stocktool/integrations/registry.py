from __future__ import annotations

from typing import Any, Dict, Optional, Type

from stocktool.config.settings import Settings
from stocktool.integrations.alpha_vantage_rest import AlphaVantageRestClient
from stocktool.integrations.base import QuoteProvider
from stocktool.integrations.finnhub_rest import FinnhubRestClient
from stocktool.integrations.yahoo_rest import YahooRestClient
from stocktool.integrations.yahoo_scrape import YahooScrapeClient

PROVIDERS: Dict[str, Type[QuoteProvider]] = {
    cls.name: cls
    for cls in (FinnhubRestClient, AlphaVantageRestClient, YahooRestClient, YahooScrapeClient)
}


def build_provider(settings: Settings, *, session: Optional[Any] = None) -> QuoteProvider:
    """Instantiate the configured provider.

    Raises MissingCredentialError when the provider needs a key that is not set.
    """
    provider_cls = PROVIDERS[settings.QUOTE_PROVIDER]
    api_key = getattr(settings, provider_cls.credential_setting) if provider_cls.credential_setting else None
    return provider_cls(
        api_key,
        session=session,
        timeout_sec=settings.UPSTREAM_TIMEOUT_SEC,
        display_tz=settings.QUOTE_DISPLAY_TZ,
        history_days=settings.QUOTE_HISTORY_DAYS,
    )
