"""Shared key-value cache with per-entry TTL.

Values are JSON-serializable structures stored as JSON text. Entries expire
on their own; nothing in this package invalidates them early, so staleness
is bounded only by the TTL tier used when the entry was written.

Stores raise ``CacheUnavailable`` when the backend cannot be reached. A
corrupt entry is logged and reported as a miss.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable, Protocol, runtime_checkable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from portfolio_pulse.core.config import CacheConfig
from portfolio_pulse.core.exceptions import CacheUnavailable
from portfolio_pulse.core.models import CacheBackend

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache backends."""

    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None on a miss."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` for ``ttl_seconds``. Overwrites unconditionally."""
        ...

    async def close(self) -> None: ...


class RedisCacheStore:
    """Redis-backed implementation of CacheStore (``GET`` / ``SET key EX``).

    Parameters
    ----------
    redis_url : str
        Connection URL, e.g. ``redis://localhost:6379/0``.
    socket_timeout : float
        Seconds before a cache round-trip counts as unavailable.
    client : Redis | None
        Pre-built client (tests). Created from ``redis_url`` if None.
    """

    def __init__(
        self,
        redis_url: str,
        socket_timeout: float = 2.0,
        client: Redis | None = None,
    ) -> None:
        self._client = client or Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(
                f"Cache read failed: {e}", context={"operation": "get", "key": key}
            ) from e

        if not raw:
            return None

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value, separators=(",", ":"))
        try:
            await self._client.set(key, payload, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(
                f"Cache write failed: {e}", context={"operation": "set", "key": key}
            ) from e

    async def close(self) -> None:
        await self._client.aclose()


class MemoryCacheStore:
    """In-process CacheStore for single-worker deployments and development.

    Values round-trip through JSON so callers see exactly what Redis would
    return. Expired entries are dropped on read, and swept in bulk whenever
    a write finds more than ``sweep_threshold`` entries stored.
    """

    def __init__(self, clock=time.monotonic, sweep_threshold: int = 1024) -> None:
        self._clock = clock
        self._sweep_threshold = sweep_threshold
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        if len(self._entries) >= self._sweep_threshold:
            self._sweep(now)
        self._entries[key] = (now + ttl_seconds, json.dumps(value))

    def _sweep(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullCacheStore:
    """CacheStore that never stores anything; every read is a miss."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        return None

    async def close(self) -> None:
        return None


def create_cache_store(config: CacheConfig) -> CacheStore:
    """Factory: build the configured cache backend."""
    if config.backend == CacheBackend.REDIS:
        return RedisCacheStore(config.redis_url or "")
    if config.backend == CacheBackend.MEMORY:
        return MemoryCacheStore()
    return NullCacheStore()


def _canonical(symbols: Iterable[str]) -> str:
    """Sorted, de-duplicated, comma-joined; order-independent by construction."""
    return ",".join(sorted({s for s in symbols if s}))


class CacheKeys:
    """Deterministic cache key builders.

    Every parameter that shapes a response is part of its key, and symbol
    sets are canonicalized, so identical requests always collide and distinct
    requests never do.
    """

    def __init__(self, prefix: str = "pulse") -> None:
        self._prefix = prefix

    def _key(self, *parts: object) -> str:
        return ":".join([self._prefix, *(str(p) for p in parts)])

    def crypto_markets(self, coin_ids: Iterable[str]) -> str:
        return self._key("coingecko", "markets", _canonical(coin_ids))

    def crypto_ticker(self, pair: str) -> str:
        return self._key("binance", "ticker", pair.upper())

    def crypto_klines(self, pair: str, interval: str, limit: int) -> str:
        return self._key("binance", "klines", pair.upper(), interval, limit)

    def stock_quote(self, symbol: str) -> str:
        return self._key("finnhub", "quote", symbol.upper())

    def stock_candles(self, symbol: str, resolution: str, lookback_seconds: int) -> str:
        return self._key("finnhub", "candles", symbol.upper(), resolution, lookback_seconds)

    def market_news(self, category: str) -> str:
        return self._key("news", "market", category.lower())

    def symbol_news(self, symbol: str, asset_type: str) -> str:
        return self._key("news", asset_type.lower(), symbol.upper())

    def portfolio_news(self, stock_symbols: Iterable[str], crypto_symbols: Iterable[str]) -> str:
        return self._key(
            "news",
            "portfolio",
            _canonical(s.upper() for s in stock_symbols),
            _canonical(s.upper() for s in crypto_symbols),
        )

    def search(self, query: str, asset_type: str | None) -> str:
        return self._key("search", (asset_type or "all").lower(), query.strip().lower())

    def popular(self, asset_type: str) -> str:
        return self._key("popular", asset_type.lower())
