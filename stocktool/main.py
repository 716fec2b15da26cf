from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI

from stocktool.api.routes import router, shell_router
from stocktool.config.settings import Settings, get_settings
from stocktool.errors import MissingCredentialError
from stocktool.services.offline_worker import OfflineCacheWorker
from stocktool.services.quote_aggregator import QuoteAggregator


def _bind_quote_aggregator(app: FastAPI, settings: Settings, *, session: Optional[Any] = None) -> None:
    """Build the aggregator once; a missing key leaves the quote routes answering 500."""
    try:
        app.state.quote_aggregator = QuoteAggregator.from_settings(settings, session=session)
        app.state.quote_aggregator_error = None
    except MissingCredentialError as exc:
        app.state.quote_aggregator = None
        app.state.quote_aggregator_error = str(exc)
        print(f"[APP][provider_unavailable] provider={settings.QUOTE_PROVIDER} error={exc}", flush=True)


def _bind_offline_worker(app: FastAPI, settings: Settings, *, session: Optional[Any] = None) -> None:
    app.state.offline_worker = OfflineCacheWorker.from_settings(settings, session=session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.get_settings()
    if settings.SHELL_PRECACHE_ON_STARTUP:
        try:
            await app.state.offline_worker.start()
        except Exception as exc:
            # quotes stay available without an offline shell
            print(f"[APP][shell_precache_failed] error={exc!r}", flush=True)
    yield


app = FastAPI(title="Stocktool Quote Gateway", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")
app.include_router(shell_router)

app.state.get_settings = get_settings
_bind_quote_aggregator(app, get_settings())
_bind_offline_worker(app, get_settings())
