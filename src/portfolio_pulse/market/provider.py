"""Provider protocols — the source-agnostic interface layer.

Architecture
------------
Each upstream API is wrapped by one adapter that owns its HTTP client and
translates the provider's bespoke JSON into the shared records:

    Upstream JSON → response schema (pydantic) → Quote / Candle / CoinMarket

- **QuoteSource** prices one symbol and returns its bar history. Both the
  exchange adapter and the stock adapter implement it.
- **ExchangeSource** adds a lightweight spot price, the degraded crypto
  source when batch metadata is unavailable.
- **StockSource** adds stock search and company display names.
- **MarketMetadataSource** prices a batch of coins in one call and carries
  display metadata (name, image, ranking).
- **NewsSource** returns normalized news articles.

The aggregator depends only on these protocols, so tests substitute doubles
without touching HTTP.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from portfolio_pulse.core.models import (
    AssetSearchResult,
    Candle,
    CoinMarket,
    NewsArticle,
    Quote,
)


@runtime_checkable
class QuoteSource(Protocol):
    """Single-symbol quotes and history from one provider.

    Implementations raise ``UpstreamUnavailable`` for transport or schema
    failures. A symbol the provider knows nothing about yields a zero-price
    Quote or an empty candle list, never an exception.
    """

    async def get_quote(self, symbol: str) -> Quote: ...

    async def get_history(self, symbol: str, window: Any) -> list[Candle]:
        """Bars for ``window`` (the provider's own window type), ascending."""
        ...


@runtime_checkable
class MarketMetadataSource(Protocol):
    """Batch coin pricing plus display metadata."""

    async def get_markets(self, coin_ids: Sequence[str]) -> list[CoinMarket]:
        """One upstream call for the whole batch. Missing coins are omitted."""
        ...

    async def search(self, query: str) -> list[AssetSearchResult]: ...


@runtime_checkable
class NewsSource(Protocol):
    """Market and company news."""

    async def get_market_news(self, category: str = "general") -> list[NewsArticle]: ...

    async def get_company_news(self, symbol: str) -> list[NewsArticle]: ...


@runtime_checkable
class ExchangeSource(QuoteSource, Protocol):
    """Exchange quotes plus a price-only fallback."""

    async def get_price(self, symbol: str) -> Quote:
        """Spot price with zero change fields."""
        ...


@runtime_checkable
class StockSource(QuoteSource, Protocol):
    """Stock quotes plus reference lookups."""

    async def search(self, query: str) -> list[AssetSearchResult]: ...

    async def get_company_name(self, symbol: str) -> str | None: ...
