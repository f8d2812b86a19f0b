"""Tests for the CoinGecko metadata adapter."""

from __future__ import annotations

import httpx
import pytest
import respx

from portfolio_pulse.core.config import ProviderConfig
from portfolio_pulse.core.exceptions import RateLimited
from portfolio_pulse.core.models import AssetType, Provider
from portfolio_pulse.market.coingecko import CoinGeckoAdapter, CoinGeckoProvider, _MarketRow
from portfolio_pulse.market.http import UpstreamClient
from portfolio_pulse.market.provider import MarketMetadataSource

BASE = "https://api.coingecko.com/api/v3"

MARKET_ROWS = [
    {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "image": "https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
        "current_price": 67250.0,
        "market_cap": 1320000000000,
        "market_cap_rank": 1,
        "price_change_24h": 1250.5,
        "price_change_percentage_24h": 1.9,
    },
    {
        "id": "ethereum",
        "symbol": "eth",
        "name": "Ethereum",
        "image": None,
        "current_price": 3480.0,
        "market_cap_rank": 2,
        "price_change_24h": None,
        "price_change_percentage_24h": -2.5,
    },
]


def _provider(api_key: str | None = None) -> CoinGeckoProvider:
    client = UpstreamClient(Provider.COINGECKO, ProviderConfig(base_url=BASE, api_key=api_key))
    return CoinGeckoProvider(client)


class TestCoinGeckoAdapter:
    def test_symbols_uppercased(self):
        rows = [_MarketRow.model_validate(r) for r in MARKET_ROWS]
        markets = CoinGeckoAdapter().adapt_markets(rows)
        assert [m.symbol for m in markets] == ["BTC", "ETH"]
        assert markets[0].market_cap_rank == 1

    def test_unpriced_rows_dropped(self):
        rows = [
            _MarketRow(id="deadcoin", symbol="dead", name="Dead", current_price=None),
            _MarketRow(id="zero", symbol="zero", name="Zero", current_price=0),
        ]
        assert CoinGeckoAdapter().adapt_markets(rows) == []


class TestCoinGeckoProvider:
    def test_protocol_conformance(self):
        assert isinstance(_provider(), MarketMetadataSource)

    @respx.mock
    async def test_one_request_for_batch(self):
        route = respx.get(f"{BASE}/coins/markets").mock(
            return_value=httpx.Response(200, json=MARKET_ROWS)
        )
        markets = await _provider().get_markets(["bitcoin", "ethereum"])

        assert route.call_count == 1
        params = route.calls.last.request.url.params
        assert params["ids"] == "bitcoin,ethereum"
        assert params["vs_currency"] == "usd"
        assert params["per_page"] == "2"
        assert params["price_change_percentage"] == "24h"
        assert {m.id for m in markets} == {"bitcoin", "ethereum"}

    @respx.mock
    async def test_empty_batch_makes_no_call(self):
        route = respx.get(f"{BASE}/coins/markets")
        assert await _provider().get_markets([]) == []
        assert route.call_count == 0

    @respx.mock
    async def test_demo_key_header(self):
        route = respx.get(f"{BASE}/coins/markets").mock(
            return_value=httpx.Response(200, json=[])
        )
        await _provider(api_key="CG-demo").get_markets(["bitcoin"])
        assert route.calls.last.request.headers["x-cg-demo-api-key"] == "CG-demo"

    @respx.mock
    async def test_no_key_no_header(self):
        route = respx.get(f"{BASE}/coins/markets").mock(
            return_value=httpx.Response(200, json=[])
        )
        await _provider().get_markets(["bitcoin"])
        assert "x-cg-demo-api-key" not in route.calls.last.request.headers

    @respx.mock
    async def test_rate_limit_propagates(self):
        respx.get(f"{BASE}/coins/markets").mock(return_value=httpx.Response(429))
        with pytest.raises(RateLimited):
            await _provider().get_markets(["bitcoin"])

    @respx.mock
    async def test_search(self):
        respx.get(f"{BASE}/search").mock(
            return_value=httpx.Response(
                200,
                json={
                    "coins": [
                        {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC", "thumb": "t.png", "large": "l.png"},
                        {"id": "bitcoin-cash", "name": "Bitcoin Cash", "symbol": "bch", "thumb": "t2.png"},
                    ],
                    "exchanges": [],
                },
            )
        )
        results = await _provider().search("bitcoin")
        assert [r.id for r in results] == ["bitcoin", "bitcoin-cash"]
        assert results[0].image == "l.png"
        assert results[1].image == "t2.png"
        assert results[1].symbol == "BCH"
        assert all(r.asset_type == AssetType.CRYPTO for r in results)

    @respx.mock
    async def test_search_capped_at_ten(self):
        coins = [{"id": f"c{i}", "name": f"Coin {i}", "symbol": f"c{i}"} for i in range(25)]
        respx.get(f"{BASE}/search").mock(return_value=httpx.Response(200, json={"coins": coins}))
        assert len(await _provider().search("coin")) == 10
