from __future__ import annotations

from typing import Iterable

from stocktool.schemas.shell import CachedResponse


def stale_cache_names(names: Iterable[str], current: str) -> list[str]:
    """Every bucket name except the current version, in input order."""
    return [name for name in names if name != current]


class ShellCache:
    """One named bucket of url -> response snapshot."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, CachedResponse] = {}

    def put(self, url: str, response: CachedResponse) -> None:
        self._entries[url] = response

    def put_many(self, responses: dict[str, CachedResponse]) -> None:
        self._entries.update(responses)

    def match(self, url: str) -> CachedResponse | None:
        return self._entries.get(url)

    def delete(self, url: str) -> bool:
        return self._entries.pop(url, None) is not None

    def urls(self) -> list[str]:
        return list(self._entries)


class CacheStorage:
    def __init__(self) -> None:
        self._buckets: dict[str, ShellCache] = {}

    def open(self, name: str) -> ShellCache:
        bucket = self._buckets.get(name)
        if bucket is None:
            bucket = ShellCache(name)
            self._buckets[name] = bucket
        return bucket

    def has(self, name: str) -> bool:
        return name in self._buckets

    def keys(self) -> list[str]:
        return list(self._buckets)

    def delete(self, name: str) -> bool:
        return self._buckets.pop(name, None) is not None

    def snapshot(self) -> dict[str, list[str]]:
        return {name: bucket.urls() for name, bucket in self._buckets.items()}
