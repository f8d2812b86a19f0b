"""Integration test fixtures — real adapters and cache, mocked network."""

from __future__ import annotations

import pytest

from portfolio_pulse.core.config import (
    CacheConfig,
    ProviderConfig,
    ProvidersConfig,
    PulseConfig,
)
from portfolio_pulse.core.models import CacheBackend
from portfolio_pulse.market.aggregator import MarketDataAggregator, create_aggregator
from portfolio_pulse.market.cache import MemoryCacheStore

BINANCE = "https://api.binance.com"
COINGECKO = "https://api.coingecko.com/api/v3"
FINNHUB = "https://finnhub.io/api/v1"


@pytest.fixture
def pulse_config() -> PulseConfig:
    return PulseConfig(
        providers=ProvidersConfig(
            binance=ProviderConfig(base_url=BINANCE, rate_limit_per_minute=1200),
            coingecko=ProviderConfig(base_url=COINGECKO, rate_limit_per_minute=30),
            finnhub=ProviderConfig(base_url=FINNHUB, api_key="fh-test", rate_limit_per_minute=60),
        ),
        cache=CacheConfig(backend=CacheBackend.MEMORY),
    )


@pytest.fixture
async def live_aggregator(pulse_config: PulseConfig) -> MarketDataAggregator:
    """Aggregator over the real adapters and an in-memory cache."""
    aggregator = create_aggregator(pulse_config, cache=MemoryCacheStore())
    yield aggregator
    await aggregator.close()


@pytest.fixture
def btc_eth_markets() -> list[dict]:
    return [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "image": "https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
            "current_price": 67250.0,
            "market_cap_rank": 1,
            "price_change_24h": 1250.5,
            "price_change_percentage_24h": 1.9,
        },
        {
            "id": "ethereum",
            "symbol": "eth",
            "name": "Ethereum",
            "current_price": 3480.0,
            "market_cap_rank": 2,
            "price_change_24h": -89.2,
            "price_change_percentage_24h": -2.5,
        },
    ]
