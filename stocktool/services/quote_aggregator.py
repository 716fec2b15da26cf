from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import requests

from stocktool.config.settings import Settings
from stocktool.errors import UpstreamError
from stocktool.integrations.base import QuoteProvider
from stocktool.integrations.registry import build_provider
from stocktool.schemas.quote import AggregateResponse, QuoteFailure, QuoteResult, QuoteSuccess

CACHE_CONTROL_HEADERS = {
    "shared": "public, max-age={max_age}",
    "no-store": "no-cache, no-store, must-revalidate",
}
FATAL_ERROR_MESSAGE = "Failed to process stock data."


def fatal_response(message: str) -> AggregateResponse:
    return AggregateResponse(
        status_code=500,
        body=json.dumps({"error": message}),
        headers={"Content-Type": "application/json"},
    )


class QuoteAggregator:
    """Fans out one task per configured symbol and merges the results.

    Each task settles into a QuoteSuccess or QuoteFailure on its own, so a bad
    symbol never takes the batch down. Only a failure while assembling the
    batch itself becomes a service-level 500.
    """

    def __init__(
        self,
        *,
        provider: QuoteProvider,
        symbols: list[str],
        include_history: bool = True,
        cache_policy: str | None = None,
        cache_max_age: int = 15,
        call_timeout_sec: float = 5.0,
        max_concurrency: int = 8,
    ) -> None:
        self.provider = provider
        self.symbols = list(symbols)
        self.include_history = include_history
        self.cache_policy = cache_policy or provider.default_cache_policy
        self.cache_max_age = cache_max_age
        self.call_timeout_sec = call_timeout_sec
        self.max_concurrency = max_concurrency

        self.batches = 0
        self.symbol_successes = 0
        self.symbol_failures = 0
        self.last_batch_target = 0
        self.last_batch_failed_symbols: list[str] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: Optional[QuoteProvider] = None,
        session: Optional[Any] = None,
    ) -> "QuoteAggregator":
        return cls(
            provider=provider or build_provider(settings, session=session),
            symbols=settings.QUOTE_SYMBOLS,
            include_history=settings.QUOTE_INCLUDE_HISTORY,
            cache_policy=settings.QUOTE_CACHE_POLICY,
            cache_max_age=settings.QUOTE_CACHE_MAX_AGE,
            call_timeout_sec=settings.UPSTREAM_TIMEOUT_SEC,
            max_concurrency=settings.UPSTREAM_MAX_CONCURRENCY,
        )

    def cache_control(self) -> str:
        return CACHE_CONTROL_HEADERS[self.cache_policy].format(max_age=self.cache_max_age)

    def find_symbol(self, symbol: str) -> str | None:
        wanted = symbol.strip().upper()
        return next((s for s in self.symbols if s.upper() == wanted), None)

    async def _call(self, semaphore: asyncio.Semaphore, fn: Callable[[str], Any], symbol: str) -> Any:
        # the slot stays taken until the worker thread returns, even after a timeout
        await semaphore.acquire()
        task = asyncio.ensure_future(asyncio.to_thread(fn, symbol))

        def _release(done: asyncio.Future) -> None:
            semaphore.release()
            if not done.cancelled():
                done.exception()

        task.add_done_callback(_release)
        return await asyncio.wait_for(asyncio.shield(task), timeout=self.call_timeout_sec)

    async def _history(self, semaphore: asyncio.Semaphore, symbol: str) -> list:
        if not self.provider.supports_history:
            return []
        try:
            return await self._call(semaphore, self.provider.fetch_history, symbol)
        except Exception as exc:
            print(f"[QUOTE][history_failed] symbol={symbol} error={exc!r}", flush=True)
            return []

    async def _resolve(self, semaphore: asyncio.Semaphore, symbol: str) -> QuoteResult:
        quote_call = self._call(semaphore, self.provider.fetch_quote, symbol)
        try:
            if self.include_history:
                quote, history = await asyncio.gather(quote_call, self._history(semaphore, symbol))
                return quote.model_copy(update={"historical_data": history})
            return await quote_call
        except UpstreamError as exc:
            error = str(exc)
        except asyncio.TimeoutError:
            error = "Upstream request timed out."
        except requests.RequestException as exc:
            print(f"[QUOTE][transport_error] symbol={symbol} error={exc!r}", flush=True)
            error = "Failed to fetch."
        except Exception as exc:
            print(f"[QUOTE][symbol_error] symbol={symbol} error={exc!r}", flush=True)
            error = "Failed to fetch."
        return QuoteFailure(symbol=symbol, error=error)

    async def resolve(self, symbol: str) -> QuoteResult:
        return await self._resolve(asyncio.Semaphore(self.max_concurrency), symbol)

    async def collect(self) -> list[QuoteResult]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(*(self._resolve(semaphore, s) for s in self.symbols))

        failed = [r.symbol for r in results if isinstance(r, QuoteFailure)]
        self.batches += 1
        self.symbol_failures += len(failed)
        self.symbol_successes += len(results) - len(failed)
        self.last_batch_target = len(self.symbols)
        self.last_batch_failed_symbols = failed

        print(
            "[QUOTE][batch_resolve] "
            f"provider={self.provider.name} target_count={len(self.symbols)} "
            f"success_count={len(results) - len(failed)} failure_count={len(failed)}",
            flush=True,
        )
        return list(results)

    async def aggregate(self) -> AggregateResponse:
        try:
            results = await self.collect()
            body = json.dumps([r.to_payload() for r in results])
        except Exception as exc:
            print(f"[QUOTE][aggregate_failed] error={exc!r}", flush=True)
            return fatal_response(FATAL_ERROR_MESSAGE)

        return AggregateResponse(
            status_code=200,
            body=body,
            headers={"Content-Type": "application/json", "Cache-Control": self.cache_control()},
        )

    def metrics(self) -> dict[str, Any]:
        return {
            "provider": self.provider.name,
            "symbols": list(self.symbols),
            "cache_control": self.cache_control(),
            "batches": self.batches,
            "symbol_successes": self.symbol_successes,
            "symbol_failures": self.symbol_failures,
            "batch_target_count": self.last_batch_target,
            "batch_failed_symbols": list(self.last_batch_failed_symbols),
        }
