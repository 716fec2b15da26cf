from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlsplit

import requests

from stocktool.config.settings import Settings
from stocktool.errors import ShellUrlNotAllowedError, WorkerStateError
from stocktool.schemas.shell import CachedResponse, WorkerState, WorkerStatus
from stocktool.services.shell_cache import CacheStorage, stale_cache_names

_KEPT_HEADERS = ("content-type", "cache-control", "etag", "last-modified")
_CACHE_BUST_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class OfflineCacheWorker:
    """Caching proxy with the service-worker lifecycle.

    install pre-caches the app shell into the bucket named ``cache_name``,
    activate drops every other bucket, and from then on ``handle_fetch``
    serves shell assets cache-first while API requests always hit the network.
    """

    def __init__(
        self,
        *,
        storage: CacheStorage,
        cache_name: str,
        assets: list[str],
        origin: str,
        api_prefix: str = "/v1/",
        api_policy: str = "no_fallback",
        populate_on_miss: bool = False,
        skip_waiting: bool = True,
        session: Optional[Any] = None,
        timeout_sec: float = 5.0,
    ) -> None:
        if api_policy not in ("no_fallback", "cache_bust"):
            raise ValueError("api_policy must be one of: no_fallback, cache_bust")
        self.storage = storage
        self.cache_name = cache_name
        self.assets = list(assets)
        self.origin = origin
        self.api_prefix = api_prefix
        self.api_policy = api_policy
        self.populate_on_miss = populate_on_miss
        self.skip_waiting = skip_waiting
        self.session = session or requests
        self.timeout_sec = timeout_sec
        self.state: WorkerState = "parsed"
        self.claimed = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        storage: Optional[CacheStorage] = None,
        session: Optional[Any] = None,
    ) -> "OfflineCacheWorker":
        return cls(
            storage=storage or CacheStorage(),
            cache_name=settings.SHELL_CACHE_NAME,
            assets=settings.SHELL_ASSETS,
            origin=settings.SHELL_ORIGIN,
            api_prefix=settings.SHELL_API_PREFIX,
            api_policy=settings.SHELL_API_POLICY,
            populate_on_miss=settings.SHELL_POPULATE_ON_MISS,
            session=session,
            timeout_sec=settings.UPSTREAM_TIMEOUT_SEC,
        )

    def resolve_url(self, url: str) -> str:
        return urljoin(self.origin, url)

    def is_api_request(self, url: str) -> bool:
        return urlsplit(self.resolve_url(url)).path.startswith(self.api_prefix)

    def is_same_origin(self, url: str) -> bool:
        origin = urlsplit(self.origin)
        parts = urlsplit(self.resolve_url(url))
        return (parts.scheme, parts.netloc) == (origin.scheme, origin.netloc)

    def is_allowed(self, url: str) -> bool:
        """Only the hosted page's own origin and the listed shell assets go through."""
        target = self.resolve_url(url)
        return self.is_same_origin(target) or target in {self.resolve_url(u) for u in self.assets}

    def _network_fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> CachedResponse:
        response = self.session.get(url, headers=headers, timeout=self.timeout_sec)
        kept = {k: v for k, v in dict(response.headers).items() if k.lower() in _KEPT_HEADERS}
        return CachedResponse(url=url, status_code=response.status_code, headers=kept, body=response.content)

    async def _fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> CachedResponse:
        return await asyncio.to_thread(self._network_fetch, url, headers)

    async def install(self) -> None:
        if self.state not in ("parsed", "redundant"):
            raise WorkerStateError(f"cannot install from state {self.state}")
        self.state = "installing"
        urls = [self.resolve_url(u) for u in self.assets]
        try:
            responses = await asyncio.gather(*(self._fetch(u) for u in urls))
            bad = [r.url for r in responses if not r.ok]
            if bad:
                raise WorkerStateError(f"shell asset fetch failed: {', '.join(bad)}")
        except Exception as exc:
            self.state = "redundant"
            print(f"[SHELL][install_failed] cache={self.cache_name} error={exc!r}", flush=True)
            raise

        # all-or-nothing: the bucket is only touched once every asset arrived
        self.storage.open(self.cache_name).put_many({r.url: r for r in responses})
        self.state = "installed"
        print(f"[SHELL][installed] cache={self.cache_name} assets={len(responses)}", flush=True)

    async def activate(self) -> None:
        if self.state != "installed":
            raise WorkerStateError(f"cannot activate from state {self.state}")
        self.state = "activating"
        for name in stale_cache_names(self.storage.keys(), self.cache_name):
            self.storage.delete(name)
            print(f"[SHELL][cache_deleted] cache={name}", flush=True)
        self.state = "activated"
        self.claimed = True
        print(f"[SHELL][activated] cache={self.cache_name}", flush=True)

    async def start(self) -> None:
        await self.install()
        if self.skip_waiting:
            await self.activate()

    async def handle_fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> CachedResponse:
        target = self.resolve_url(url)
        if not self.is_allowed(target):
            raise ShellUrlNotAllowedError(f"url not served by this shell: {target}")

        if self.state != "activated":
            # not controlling clients yet
            return await self._fetch(target, headers)

        if self.is_api_request(target):
            if self.api_policy == "cache_bust":
                headers = {**(headers or {}), **_CACHE_BUST_HEADERS}
            return await self._fetch(target, headers)

        bucket = self.storage.open(self.cache_name)
        cached = bucket.match(target)
        if cached is not None:
            return cached

        response = await self._fetch(target, headers)
        if self.populate_on_miss and response.ok and self.is_same_origin(target):
            bucket.put(target, response)
        return response

    def status(self) -> WorkerStatus:
        return WorkerStatus(
            state=self.state,
            cache_name=self.cache_name,
            claimed=self.claimed,
            caches=self.storage.snapshot(),
        )
