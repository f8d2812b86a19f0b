"""Shared pytest fixtures for portfolio-pulse."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from portfolio_pulse.core.config import CacheConfig
from portfolio_pulse.core.models import (
    AssetSearchResult,
    AssetType,
    Candle,
    CacheBackend,
    CoinMarket,
    NewsArticle,
    Provider,
    Quote,
)
from portfolio_pulse.market.aggregator import MarketDataAggregator
from portfolio_pulse.market.binance import BinanceProvider
from portfolio_pulse.market.cache import MemoryCacheStore
from portfolio_pulse.market.coingecko import CoinGeckoProvider
from portfolio_pulse.market.finnhub import FinnhubProvider


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fetched_at() -> datetime:
    return datetime(2024, 6, 3, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def btc_market() -> CoinMarket:
    return CoinMarket(
        id="bitcoin",
        symbol="BTC",
        name="Bitcoin",
        image="https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
        current_price=67250.0,
        price_change_24h=1250.5,
        price_change_percentage_24h=1.9,
        market_cap=1.32e12,
        market_cap_rank=1,
    )


@pytest.fixture
def eth_market() -> CoinMarket:
    return CoinMarket(
        id="ethereum",
        symbol="ETH",
        name="Ethereum",
        current_price=3480.0,
        price_change_24h=None,
        price_change_percentage_24h=-2.5,
        market_cap_rank=2,
    )


@pytest.fixture
def aapl_quote(fetched_at: datetime) -> Quote:
    return Quote(
        symbol="AAPL",
        asset_type=AssetType.STOCK,
        current_price=194.35,
        change_24h=1.2,
        change_percent_24h=0.62,
        fetched_at=fetched_at,
        source=Provider.FINNHUB,
        provider_id="AAPL",
        name="AAPL",
    )


@pytest.fixture
def btc_ticker_quote(fetched_at: datetime) -> Quote:
    return Quote(
        symbol="BTC",
        asset_type=AssetType.CRYPTO,
        current_price=67240.0,
        change_24h=1200.0,
        change_percent_24h=1.82,
        fetched_at=fetched_at,
        source=Provider.BINANCE,
        provider_id="BTCUSDT",
    )


@pytest.fixture
def sample_candles() -> list[Candle]:
    return [
        Candle(time=1717200000 + i * 86400, open=100 + i, high=105 + i, low=95 + i, close=102 + i, volume=10.0)
        for i in range(5)
    ]


@pytest.fixture
def sample_articles() -> list[NewsArticle]:
    return [
        NewsArticle(
            id="101",
            title="Bitcoin rallies past resistance",
            source="CoinDesk",
            url="https://example.com/btc",
            published_at=datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc),
            symbols=["BTC"],
            category="crypto",
        ),
        NewsArticle(
            id="102",
            title="Ether ETF flows slow",
            source="The Block",
            url="https://example.com/eth",
            published_at=datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc),
            symbols=["ETH"],
            category="crypto",
        ),
    ]


@pytest.fixture
def search_results() -> list[AssetSearchResult]:
    return [
        AssetSearchResult(id="bitcoin", symbol="BTC", name="Bitcoin", asset_type=AssetType.CRYPTO),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(backend=CacheBackend.MEMORY, key_prefix="test")


@pytest.fixture
def exchange() -> AsyncMock:
    return AsyncMock(spec=BinanceProvider)


@pytest.fixture
def metadata() -> AsyncMock:
    return AsyncMock(spec=CoinGeckoProvider)


@pytest.fixture
def stocks() -> AsyncMock:
    return AsyncMock(spec=FinnhubProvider)


@pytest.fixture
def aggregator(exchange, metadata, stocks, memory_cache, cache_config) -> MarketDataAggregator:
    return MarketDataAggregator(
        exchange=exchange,
        metadata=metadata,
        stocks=stocks,
        cache=memory_cache,
        cache_config=cache_config,
    )
