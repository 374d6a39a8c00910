"""Get-or-compute cache for normalized results.

Keys are ``source:operation:serializedParams``. Entries are wrapped in a
``CacheEntry`` envelope carrying ``expires_at`` so a stale entry is never
served even if the backend TTL lags. Any backend failure degrades to
pass-through.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

import config
from models import CacheEntry

LOGGER = logging.getLogger(__name__)

CACHE_BACKEND_REDIS = "redis"
CACHE_BACKEND_MEMORY = "memory"
CACHE_BACKEND_NONE = "none"

BACKEND_ERRORS = (RedisError, OSError)


def make_cache_key(source: str, operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    serialized = json.dumps(dict(params or {}), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return f"{source}:{operation}:{serialized}"


class MemoryCacheBackend:
    """In-process backend with per-key expiry; stale keys are pruned on access."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: Dict[str, Tuple[str, float]] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def _prune(self, now: float) -> None:
        for key in [key for key, (_, expires_at) in self._store.items() if expires_at <= now]:
            del self._store[key]

    async def get(self, key: str) -> Optional[str]:
        item = self._store.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at <= self._clock():
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        self._prune(now)
        self._store[key] = (value, now + max(1, int(ttl_seconds)))

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def close(self) -> None:
        self._store.clear()


class RedisCacheBackend:
    def __init__(self, url: str):
        self._client = redis_asyncio.from_url(url)

    async def get(self, key: str) -> Optional[str]:
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=max(1, int(ttl_seconds)))

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()


def build_backend(kind: Optional[str] = None):
    kind = (kind or config.CACHE_BACKEND or CACHE_BACKEND_NONE).strip().lower()
    if kind == CACHE_BACKEND_REDIS:
        return RedisCacheBackend(config.REDIS_URL)
    if kind == CACHE_BACKEND_MEMORY:
        return MemoryCacheBackend()
    return None


class CacheService:
    def __init__(self, backend=None, clock: Callable[[], float] = time.time):
        self.backend = backend
        self._clock = clock
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}

    @classmethod
    def from_config(cls) -> "CacheService":
        return cls(build_backend())

    async def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self.backend.get(key)
        except BACKEND_ERRORS as exc:
            LOGGER.warning("Cache read failed key=%s: %s", key, exc)
            return None
        if not raw:
            return None
        try:
            return CacheEntry.from_dict(json.loads(raw))
        except (TypeError, ValueError, KeyError) as exc:
            LOGGER.warning("Discarding unreadable cache entry key=%s: %s", key, exc)
            return None

    async def _write(self, key: str, payload: Any, ttl_seconds: int) -> None:
        entry = CacheEntry(key=key, payload=payload, expires_at=self._clock() + ttl_seconds)
        try:
            serialized = json.dumps(entry.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Skipping cache store for key=%s: %s", key, exc)
            return
        try:
            await self.backend.set(key, serialized, ttl_seconds)
        except BACKEND_ERRORS as exc:
            LOGGER.warning("Cache write failed key=%s: %s", key, exc)

    async def get_or_compute(
        self,
        source: str,
        operation: str,
        params: Optional[Mapping[str, Any]],
        compute: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
        *,
        encode: Callable[[Any], Any] = lambda value: value,
        decode: Callable[[Any], Any] = lambda value: value,
    ) -> Any:
        """Return the cached value for the key or compute and store it.

        ``None`` results are returned but never stored. Exceptions from
        ``compute`` propagate and nothing is cached. Concurrent misses on the
        same key share one ``compute`` call.
        """
        if self.backend is None or ttl_seconds <= 0:
            return await compute()

        key = make_cache_key(source, operation, params)
        entry = await self._read(key)
        if entry is not None and entry.is_fresh(self._clock()):
            try:
                return decode(entry.payload)
            except (TypeError, ValueError, KeyError, AttributeError) as exc:
                LOGGER.warning("Discarding undecodable cache entry key=%s: %s", key, exc)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute_and_store(key, compute, ttl_seconds, encode))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _compute_and_store(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
        encode: Callable[[Any], Any],
    ) -> Any:
        try:
            value = await compute()
            if value is not None:
                await self._write(key, encode(value), ttl_seconds)
            return value
        finally:
            self._inflight.pop(key, None)

    async def invalidate(self, source: str, operation: str, params: Optional[Mapping[str, Any]] = None) -> None:
        if self.backend is None:
            return
        key = make_cache_key(source, operation, params)
        try:
            await self.backend.delete(key)
        except BACKEND_ERRORS as exc:
            LOGGER.warning("Cache delete failed key=%s: %s", key, exc)

    async def close(self) -> None:
        if self.backend is None:
            return
        try:
            await self.backend.close()
        except BACKEND_ERRORS as exc:
            LOGGER.warning("Cache close failed: %s", exc)
