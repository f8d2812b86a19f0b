"""CoinGecko metadata adapter (batch market data and coin search).

Free tier limits are tight (10-50 calls/minute) and shared by every user of
the process, so prices are always requested for a whole batch of coin ids in
a single ``/coins/markets`` call.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel, TypeAdapter

from portfolio_pulse.core.models import (
    AssetSearchResult,
    AssetType,
    CoinMarket,
    Provider,
)
from portfolio_pulse.market.http import UpstreamClient, parse_payload

logger = logging.getLogger(__name__)

_MARKETS_PATH = "/coins/markets"
_SEARCH_PATH = "/search"
_DEMO_KEY_HEADER = "x-cg-demo-api-key"
_SEARCH_LIMIT = 10


# --- Response schemas ---


class _MarketRow(BaseModel):
    id: str
    symbol: str
    name: str
    image: str | None = None
    current_price: float | None = None
    price_change_24h: float | None = None
    price_change_percentage_24h: float | None = None
    market_cap: float | None = None
    market_cap_rank: int | None = None


class _SearchCoin(BaseModel):
    id: str
    name: str
    symbol: str
    thumb: str | None = None
    large: str | None = None


class _SearchResponse(BaseModel):
    coins: list[_SearchCoin] = []


_MARKETS = TypeAdapter(list[_MarketRow])
_SEARCH = TypeAdapter(_SearchResponse)


class CoinGeckoAdapter:
    """Transforms validated CoinGecko payloads into canonical records."""

    def adapt_markets(self, rows: list[_MarketRow]) -> list[CoinMarket]:
        """Keep only coins that actually carry a price."""
        markets: list[CoinMarket] = []
        for row in rows:
            if not row.current_price or row.current_price <= 0:
                logger.debug("CoinGecko has no price for %s", row.id)
                continue
            markets.append(
                CoinMarket(
                    id=row.id,
                    symbol=row.symbol.upper(),
                    name=row.name,
                    image=row.image,
                    current_price=row.current_price,
                    price_change_24h=row.price_change_24h,
                    price_change_percentage_24h=row.price_change_percentage_24h,
                    market_cap=row.market_cap,
                    market_cap_rank=row.market_cap_rank,
                )
            )
        return markets

    def adapt_search(self, response: _SearchResponse) -> list[AssetSearchResult]:
        return [
            AssetSearchResult(
                id=coin.id,
                symbol=coin.symbol.upper(),
                name=coin.name,
                asset_type=AssetType.CRYPTO,
                image=coin.large or coin.thumb,
            )
            for coin in response.coins[:_SEARCH_LIMIT]
        ]


class CoinGeckoProvider:
    """Fetches coin metadata and prices from CoinGecko.

    Parameters
    ----------
    client : UpstreamClient
        HTTP session configured for the CoinGecko base URL. Its ``api_key``,
        if set, is sent as a demo-plan key.
    adapter : CoinGeckoAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        client: UpstreamClient,
        adapter: CoinGeckoAdapter | None = None,
    ) -> None:
        self._client = client
        self._adapter = adapter or CoinGeckoAdapter()

    def _headers(self) -> dict[str, str] | None:
        if self._client.api_key:
            return {_DEMO_KEY_HEADER: self._client.api_key}
        return None

    async def get_markets(self, coin_ids: Sequence[str]) -> list[CoinMarket]:
        """Market rows for the batch, in one request. Unpriced coins are omitted."""
        if not coin_ids:
            return []
        params = {
            "vs_currency": "usd",
            "ids": ",".join(coin_ids),
            "order": "market_cap_desc",
            "per_page": len(coin_ids),
            "page": 1,
            "sparkline": "false",
            "price_change_percentage": "24h",
        }
        raw = await self._client.get_json(
            _MARKETS_PATH, params=params, headers=self._headers()
        )
        rows = parse_payload(_MARKETS, raw, Provider.COINGECKO, _MARKETS_PATH)
        return self._adapter.adapt_markets(rows)

    async def search(self, query: str) -> list[AssetSearchResult]:
        """Top coin matches for a free-text query."""
        raw = await self._client.get_json(
            _SEARCH_PATH, params={"query": query}, headers=self._headers()
        )
        response = parse_payload(_SEARCH, raw, Provider.COINGECKO, _SEARCH_PATH)
        return self._adapter.adapt_search(response)
