"""Market-data aggregator — cache-first fan-out over the provider adapters.

Every public method is request/response: it reads the cache, calls the
matching adapter on a miss, writes the result back, and merges. The only
shared state is the cache contents, which the aggregator treats as opaque.

Degradation policy
------------------
No public method raises for missing data. Upstream failures become
zero-price quotes, empty candle lists or empty article lists; an unreachable
cache is bypassed for the call. Programmer errors (an unknown asset type, a
malformed request) propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Iterable, Protocol, Sequence, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from portfolio_pulse.core.config import CacheConfig, PulseConfig
from portfolio_pulse.core.exceptions import CacheUnavailable, UpstreamUnavailable
from portfolio_pulse.core.models import (
    AssetSearchResult,
    AssetType,
    Candle,
    CoinMarket,
    HistoryResult,
    NewsArticle,
    PriceRequest,
    Provider,
    Quote,
    TimeRange,
)
from portfolio_pulse.market.cache import CacheKeys, CacheStore, create_cache_store
from portfolio_pulse.market.provider import (
    ExchangeSource,
    MarketMetadataSource,
    NewsSource,
    StockSource,
)
from portfolio_pulse.market.ranges import exchange_window, stock_window
from portfolio_pulse.market.symbols import (
    POPULAR_CRYPTO_IDS,
    POPULAR_STOCK_SYMBOLS,
    map_to_provider_id,
    normalize_symbol,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _MarketSnapshot(BaseModel):
    """Cached result of one batch metadata call."""

    fetched_at: datetime
    markets: list[CoinMarket]


class _Closable(Protocol):
    async def close(self) -> None: ...


_QUOTE = TypeAdapter(Quote)
_CANDLES = TypeAdapter(list[Candle])
_ARTICLES = TypeAdapter(list[NewsArticle])
_RESULTS = TypeAdapter(list[AssetSearchResult])
_SNAPSHOT = TypeAdapter(_MarketSnapshot)


def _coerce_request(item: PriceRequest | tuple[str, str] | dict[str, Any]) -> PriceRequest:
    if isinstance(item, PriceRequest):
        return item
    if isinstance(item, tuple):
        symbol, asset_type = item
        return PriceRequest(symbol=symbol, asset_type=asset_type)
    if isinstance(item, dict):
        return PriceRequest.model_validate(item)
    raise TypeError(f"Unsupported price request: {item!r}")


def _market_quote(
    symbol: str, coin_id: str, market: CoinMarket | None, fetched_at: datetime
) -> Quote:
    if market is None:
        return Quote.unavailable(symbol, AssetType.CRYPTO, coin_id)

    percent = market.price_change_percentage_24h or 0.0
    change = market.price_change_24h
    if change is None:
        change = market.current_price * percent / 100 if percent else 0.0

    return Quote(
        symbol=symbol,
        asset_type=AssetType.CRYPTO,
        current_price=market.current_price,
        change_24h=change,
        change_percent_24h=percent,
        fetched_at=fetched_at,
        source=Provider.COINGECKO,
        provider_id=coin_id,
        name=market.name or symbol,
        image=market.image,
        market_cap_rank=market.market_cap_rank,
    )


class MarketDataAggregator:
    """Cache-first market data over three providers.

    Parameters
    ----------
    exchange : ExchangeSource
        Crypto exchange adapter (candles, 24h ticker, spot price).
    metadata : MarketMetadataSource
        Coin-metadata adapter (batch prices, names, images, search).
    stocks : StockSource
        Stock-quote adapter (quotes, candles, search, company names).
    cache : CacheStore
        Shared cache. Any backend works; failures are bypassed.
    cache_config : CacheConfig | None
        TTL tiers and key prefix. Defaults if None.
    news : NewsSource | None
        News adapter. Defaults to ``stocks`` when it also serves news.
    owned : Iterable | None
        Resources closed by :meth:`close` (HTTP clients built by
        :func:`create_aggregator`).
    """

    def __init__(
        self,
        exchange: ExchangeSource,
        metadata: MarketMetadataSource,
        stocks: StockSource,
        cache: CacheStore,
        cache_config: CacheConfig | None = None,
        news: NewsSource | None = None,
        owned: Iterable[_Closable] | None = None,
    ) -> None:
        self._exchange = exchange
        self._metadata = metadata
        self._stocks = stocks
        self._news = news if news is not None else stocks
        self._cache = cache
        self._ttl = cache_config or CacheConfig()
        self._keys = CacheKeys(self._ttl.key_prefix)
        self._owned = list(owned or [])

    async def close(self) -> None:
        """Release the cache connection and any owned HTTP clients."""
        for resource in self._owned:
            await resource.close()
        await self._cache.close()

    # --- Cache access (best-effort) ---

    async def _cache_get(self, key: str) -> Any | None:
        try:
            return await self._cache.get(key)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, fetching upstream for %s: %s", key, e)
            return None

    async def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._cache.set(key, value, ttl)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, not storing %s: %s", key, e)

    async def _cached(
        self,
        key: str,
        ttl: int,
        schema: TypeAdapter[T],
        fetch: Callable[[], Awaitable[T]],
        fallback: T,
    ) -> T:
        """Read-through cache. Upstream failures return ``fallback`` uncached."""
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return schema.validate_python(cached)
            except ValidationError:
                logger.warning("Ignoring cache entry %s with unexpected shape", key)

        try:
            value = await fetch()
        except UpstreamUnavailable as e:
            logger.warning("Upstream unavailable for %s: %s", key, e)
            return fallback

        await self._cache_set(key, schema.dump_python(value, mode="json"), ttl)
        return value

    # --- Prices ---

    async def get_prices(
        self,
        requests: Sequence[PriceRequest | tuple[str, str] | dict[str, Any]],
    ) -> list[Quote]:
        """One Quote per request, in request order.

        Fallback chain, in order:

        1. Stock symbols: cache → stock adapter quote → zero-price quote.
           Each symbol is isolated; one failure never touches its siblings.
        2. Crypto symbols without a coin-id mapping: zero-price quote, no
           network call.
        3. Mapped crypto symbols: cache (one key for the sorted id batch) →
           one batch metadata call → exchange spot price per symbol (price
           only, not cached) → zero-price quote.
        """
        items = [_coerce_request(r) for r in requests]
        crypto = [r.symbol for r in items if r.asset_type == AssetType.CRYPTO]
        stock = [r.symbol for r in items if r.asset_type == AssetType.STOCK]

        crypto_quotes, stock_quotes = await asyncio.gather(
            self._crypto_quotes(crypto),
            self._stock_quotes(stock),
        )

        return [
            crypto_quotes[r.symbol]
            if r.asset_type == AssetType.CRYPTO
            else stock_quotes[r.symbol]
            for r in items
        ]

    async def _crypto_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        quotes: dict[str, Quote] = {}
        mapped: dict[str, str] = {}
        for symbol in dict.fromkeys(symbols):
            coin_id = map_to_provider_id(symbol, Provider.COINGECKO)
            if coin_id is None:
                logger.debug("No coin mapping for %s", symbol)
                quotes[symbol] = Quote.unavailable(symbol, AssetType.CRYPTO)
            else:
                mapped[symbol] = coin_id

        if not mapped:
            return quotes

        coin_ids = sorted(set(mapped.values()))
        snapshot = await self._cached(
            self._keys.crypto_markets(coin_ids),
            self._ttl.quote_ttl,
            _SNAPSHOT,
            lambda: self._fetch_markets(coin_ids),
            None,
        )

        if snapshot is None:
            logger.warning(
                "Batch metadata unavailable for %d coins, using exchange prices",
                len(coin_ids),
            )
            quotes.update(await self._exchange_prices(mapped))
            return quotes

        by_id = {m.id: m for m in snapshot.markets}
        for symbol, coin_id in mapped.items():
            quotes[symbol] = _market_quote(
                symbol, coin_id, by_id.get(coin_id), snapshot.fetched_at
            )
        return quotes

    async def _fetch_markets(self, coin_ids: list[str]) -> _MarketSnapshot:
        markets = await self._metadata.get_markets(coin_ids)
        return _MarketSnapshot(fetched_at=datetime.now(timezone.utc), markets=markets)

    async def _exchange_prices(self, mapped: dict[str, str]) -> dict[str, Quote]:
        """Degraded crypto source: spot price per symbol, each isolated."""

        async def _one(symbol: str) -> Quote:
            pair = map_to_provider_id(symbol, Provider.BINANCE)
            if pair is None:
                return Quote.unavailable(symbol, AssetType.CRYPTO, mapped[symbol])
            try:
                quote = await self._exchange.get_price(pair)
            except UpstreamUnavailable as e:
                logger.warning("Exchange price unavailable for %s: %s", symbol, e)
                return Quote.unavailable(symbol, AssetType.CRYPTO, mapped[symbol])
            return quote.model_copy(update={"symbol": symbol, "name": symbol})

        symbols = list(mapped)
        results = await asyncio.gather(*(_one(s) for s in symbols))
        return dict(zip(symbols, results))

    async def _stock_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        unique = list(dict.fromkeys(symbols))
        results = await asyncio.gather(*(self._stock_quote(s) for s in unique))
        return dict(zip(unique, results))

    async def _stock_quote(self, symbol: str) -> Quote:
        return await self._cached(
            self._keys.stock_quote(symbol),
            self._ttl.quote_ttl,
            _QUOTE,
            lambda: self._stocks.get_quote(symbol),
            Quote.unavailable(symbol, AssetType.STOCK),
        )

    # --- History ---

    async def get_history(
        self,
        symbol: str,
        asset_type: AssetType | str = AssetType.CRYPTO,
        time_range: TimeRange | str | None = None,
    ) -> HistoryResult:
        """Candles for ``time_range`` plus the latest quote.

        Unknown ranges behave as 3M. Candles and quote are fetched
        concurrently and fail independently.
        """
        symbol = normalize_symbol(symbol)
        asset_type = AssetType(str(asset_type).upper())
        range_ = TimeRange.parse(time_range)

        if asset_type == AssetType.CRYPTO:
            candles, quote = await self._crypto_history(symbol, range_)
        else:
            candles, quote = await self._stock_history(symbol, range_)

        return HistoryResult(
            symbol=symbol,
            asset_type=asset_type,
            time_range=range_,
            candles=tuple(candles),
            latest_quote=quote,
        )

    async def _crypto_history(
        self, symbol: str, range_: TimeRange
    ) -> tuple[list[Candle], Quote]:
        pair = map_to_provider_id(symbol, Provider.BINANCE)
        if pair is None:
            logger.debug("No exchange pair for %s", symbol)
            return [], Quote.unavailable(symbol, AssetType.CRYPTO)

        window = exchange_window(range_)
        candles_task = self._cached(
            self._keys.crypto_klines(pair, window.interval, window.limit),
            self._ttl.history_ttl,
            _CANDLES,
            lambda: self._exchange.get_history(pair, window),
            [],
        )
        quote_task = self._cached(
            self._keys.crypto_ticker(pair),
            self._ttl.quote_ttl,
            _QUOTE,
            lambda: self._exchange.get_quote(pair),
            Quote.unavailable(symbol, AssetType.CRYPTO, pair),
        )
        return await asyncio.gather(candles_task, quote_task)

    async def _stock_history(
        self, symbol: str, range_: TimeRange
    ) -> tuple[list[Candle], Quote]:
        window = stock_window(range_)
        candles_task = self._cached(
            self._keys.stock_candles(
                symbol, window.resolution, int(window.lookback.total_seconds())
            ),
            self._ttl.history_ttl,
            _CANDLES,
            lambda: self._stocks.get_history(symbol, window),
            [],
        )
        return await asyncio.gather(candles_task, self._stock_quote(symbol))

    # --- News ---

    async def get_news(
        self,
        symbol: str | None = None,
        asset_type: AssetType | str | None = None,
        category: str = "general",
    ) -> list[NewsArticle]:
        """Market news, company news, or crypto news related to ``symbol``."""
        if not symbol:
            return await self._cached(
                self._keys.market_news(category),
                self._ttl.news_ttl,
                _ARTICLES,
                lambda: self._news.get_market_news(category),
                [],
            )

        symbol = normalize_symbol(symbol)
        asset_type = AssetType(str(asset_type or AssetType.STOCK).upper())
        if asset_type == AssetType.CRYPTO:
            fetch = partial(self._crypto_news, {symbol})
        else:
            fetch = partial(self._news.get_company_news, symbol)

        return await self._cached(
            self._keys.symbol_news(symbol, asset_type.value),
            self._ttl.news_ttl,
            _ARTICLES,
            fetch,
            [],
        )

    async def _crypto_news(self, symbols: set[str]) -> list[NewsArticle]:
        """Crypto-category market news mentioning any of ``symbols``."""
        articles = await self._news.get_market_news("crypto")
        return [a for a in articles if symbols.intersection(a.symbols)]

    async def get_portfolio_news(
        self,
        stock_symbols: Iterable[str],
        crypto_symbols: Iterable[str],
    ) -> list[NewsArticle]:
        """Merged news for a set of holdings, newest first, de-duplicated."""
        stocks = sorted({normalize_symbol(s) for s in stock_symbols})
        cryptos = sorted({normalize_symbol(s) for s in crypto_symbols})
        if not stocks and not cryptos:
            return []

        return await self._cached(
            self._keys.portfolio_news(stocks, cryptos),
            self._ttl.news_ttl,
            _ARTICLES,
            lambda: self._fetch_portfolio_news(stocks, cryptos),
            [],
        )

    async def _fetch_portfolio_news(
        self, stocks: list[str], cryptos: list[str]
    ) -> list[NewsArticle]:
        async def _guarded(
            fetch: Awaitable[list[NewsArticle]],
        ) -> list[NewsArticle] | None:
            try:
                return await fetch
            except UpstreamUnavailable as e:
                logger.warning("Portfolio news source failed: %s", e)
                return None

        tasks = [_guarded(self._news.get_company_news(s)) for s in stocks]
        if cryptos:
            tasks.append(_guarded(self._crypto_news(set(cryptos))))

        batches = [b for b in await asyncio.gather(*tasks) if b is not None]
        if not batches:
            # every source failed; do not cache an empty merge
            raise UpstreamUnavailable(
                "No portfolio news source responded",
                context={"provider": Provider.FINNHUB.value},
            )

        merged: dict[str, NewsArticle] = {}
        for batch in batches:
            for article in batch:
                merged.setdefault(article.id, article)
        return sorted(merged.values(), key=lambda a: a.published_at, reverse=True)

    # --- Reference data ---

    async def search_assets(
        self,
        query: str,
        asset_type: AssetType | str | None = None,
    ) -> list[AssetSearchResult]:
        """Crypto and/or stock matches. Queries under 2 characters match nothing."""
        query = query.strip()
        if len(query) < 2:
            return []

        wanted = (
            [AssetType(str(asset_type).upper())]
            if asset_type
            else [AssetType.CRYPTO, AssetType.STOCK]
        )
        sources = {
            AssetType.CRYPTO: self._metadata.search,
            AssetType.STOCK: self._stocks.search,
        }
        groups = await asyncio.gather(
            *(
                self._cached(
                    self._keys.search(query, kind.value),
                    self._ttl.reference_ttl,
                    _RESULTS,
                    lambda search=sources[kind]: search(query),
                    [],
                )
                for kind in wanted
            )
        )
        return [result for group in groups for result in group]

    async def get_popular_assets(
        self, asset_type: AssetType | str = AssetType.CRYPTO
    ) -> list[AssetSearchResult]:
        """Fixed list of well-known assets with display names."""
        asset_type = AssetType(str(asset_type).upper())
        fetch = (
            self._popular_crypto
            if asset_type == AssetType.CRYPTO
            else self._popular_stocks
        )
        return await self._cached(
            self._keys.popular(asset_type.value),
            self._ttl.reference_ttl,
            _RESULTS,
            fetch,
            [],
        )

    async def _popular_crypto(self) -> list[AssetSearchResult]:
        markets = await self._metadata.get_markets(list(POPULAR_CRYPTO_IDS))
        return [
            AssetSearchResult(
                id=m.id,
                symbol=m.symbol.upper(),
                name=m.name,
                asset_type=AssetType.CRYPTO,
                image=m.image,
            )
            for m in markets
        ]

    async def _popular_stocks(self) -> list[AssetSearchResult]:
        async def _one(symbol: str) -> AssetSearchResult:
            try:
                name = await self._stocks.get_company_name(symbol)
            except UpstreamUnavailable as e:
                logger.debug("No profile for %s: %s", symbol, e)
                name = None
            return AssetSearchResult(
                id=symbol, symbol=symbol, name=name or symbol, asset_type=AssetType.STOCK
            )

        return list(await asyncio.gather(*(_one(s) for s in POPULAR_STOCK_SYMBOLS)))


def create_aggregator(
    config: PulseConfig,
    cache: CacheStore | None = None,
) -> MarketDataAggregator:
    """Factory: build upstream clients, adapters and cache from config."""
    from portfolio_pulse.market.binance import BinanceProvider
    from portfolio_pulse.market.coingecko import CoinGeckoProvider
    from portfolio_pulse.market.finnhub import FinnhubProvider
    from portfolio_pulse.market.http import UpstreamClient

    binance_client = UpstreamClient(Provider.BINANCE, config.providers.binance)
    coingecko_client = UpstreamClient(Provider.COINGECKO, config.providers.coingecko)
    finnhub_client = UpstreamClient(Provider.FINNHUB, config.providers.finnhub)

    return MarketDataAggregator(
        exchange=BinanceProvider(binance_client),
        metadata=CoinGeckoProvider(coingecko_client),
        stocks=FinnhubProvider(finnhub_client),
        cache=cache or create_cache_store(config.cache),
        cache_config=config.cache,
        owned=[binance_client, coingecko_client, finnhub_client],
    )
