"""portfolio_pulse.market — Provider adapters, cache and the aggregator.

Data flow::

    caller → MarketDataAggregator → CacheStore (hit) ─────────────┐
                                  → symbol mapper → adapter → HTTP │
                                  ← canonical Quote / Candle ←─────┘

Crypto prices come from one batch CoinGecko call, falling back to Binance
spot prices. Crypto candles come from Binance. Stock quotes, candles and
news come from Finnhub.
"""

from portfolio_pulse.market.aggregator import MarketDataAggregator, create_aggregator
from portfolio_pulse.market.binance import BinanceAdapter, BinanceProvider
from portfolio_pulse.market.cache import (
    CacheKeys,
    CacheStore,
    MemoryCacheStore,
    NullCacheStore,
    RedisCacheStore,
    create_cache_store,
)
from portfolio_pulse.market.coingecko import CoinGeckoAdapter, CoinGeckoProvider
from portfolio_pulse.market.finnhub import FinnhubAdapter, FinnhubProvider
from portfolio_pulse.market.http import UpstreamClient
from portfolio_pulse.market.provider import (
    ExchangeSource,
    MarketMetadataSource,
    NewsSource,
    QuoteSource,
    StockSource,
)
from portfolio_pulse.market.ranges import (
    EXCHANGE_WINDOWS,
    STOCK_WINDOWS,
    ExchangeWindow,
    StockWindow,
    exchange_window,
    stock_window,
)
from portfolio_pulse.market.symbols import (
    SYMBOL_TO_COINGECKO_ID,
    SYMBOL_TO_EXCHANGE_PAIR,
    map_to_provider_id,
    normalize_symbol,
    supported_symbols,
)

__all__ = [
    # Aggregation
    "MarketDataAggregator",
    "create_aggregator",
    # Protocols
    "QuoteSource",
    "ExchangeSource",
    "StockSource",
    "MarketMetadataSource",
    "NewsSource",
    # Adapters
    "BinanceAdapter",
    "BinanceProvider",
    "CoinGeckoAdapter",
    "CoinGeckoProvider",
    "FinnhubAdapter",
    "FinnhubProvider",
    "UpstreamClient",
    # Cache
    "CacheStore",
    "RedisCacheStore",
    "MemoryCacheStore",
    "NullCacheStore",
    "CacheKeys",
    "create_cache_store",
    # Symbols & ranges
    "SYMBOL_TO_COINGECKO_ID",
    "SYMBOL_TO_EXCHANGE_PAIR",
    "map_to_provider_id",
    "normalize_symbol",
    "supported_symbols",
    "ExchangeWindow",
    "StockWindow",
    "EXCHANGE_WINDOWS",
    "STOCK_WINDOWS",
    "exchange_window",
    "stock_window",
]
