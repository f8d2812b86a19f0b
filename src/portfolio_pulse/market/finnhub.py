"""Finnhub adapter for stock quotes, candles, news, search and profiles.

Every endpoint requires an API token, sent in the ``X-Finnhub-Token`` header
so it never appears in logged URLs. Finnhub answers unknown symbols with a
zero-filled quote (``c == 0``) or ``{"s": "no_data"}`` candles; both are
"no data", not failures.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, TypeAdapter

from portfolio_pulse.core.exceptions import UpstreamUnavailable
from portfolio_pulse.core.models import (
    AssetSearchResult,
    AssetType,
    Candle,
    NewsArticle,
    Provider,
    Quote,
)
from portfolio_pulse.market.http import UpstreamClient, parse_payload
from portfolio_pulse.market.ranges import StockWindow

logger = logging.getLogger(__name__)

_QUOTE_PATH = "/quote"
_CANDLE_PATH = "/stock/candle"
_MARKET_NEWS_PATH = "/news"
_COMPANY_NEWS_PATH = "/company-news"
_SEARCH_PATH = "/search"
_PROFILE_PATH = "/stock/profile2"
_TOKEN_HEADER = "X-Finnhub-Token"

_COMPANY_NEWS_DAYS = 7
_SEARCH_LIMIT = 10
_STOCK_SEARCH_TYPES = {"Common Stock", "Equity"}


# --- Response schemas ---


class _QuotePayload(BaseModel):
    c: float = 0.0  # current price
    d: float | None = None  # change
    dp: float | None = None  # percent change
    t: int | None = None  # timestamp


class _CandlePayload(BaseModel):
    s: str
    t: list[int] = []
    o: list[float] = []
    h: list[float] = []
    l: list[float] = []  # noqa: E741
    c: list[float] = []
    v: list[float] = []


class _NewsItem(BaseModel):
    id: int | str
    headline: str
    summary: str = ""
    source: str = ""
    url: str
    image: str | None = None
    datetime: int
    related: str = ""
    category: str | None = None


class _SearchMatch(BaseModel):
    description: str = ""
    displaySymbol: str = ""
    symbol: str
    type: str = ""


class _SearchPayload(BaseModel):
    result: list[_SearchMatch] = []


class _ProfilePayload(BaseModel):
    name: str | None = None
    ticker: str | None = None
    logo: str | None = None


_QUOTE = TypeAdapter(_QuotePayload)
_CANDLES = TypeAdapter(_CandlePayload)
_NEWS = TypeAdapter(list[_NewsItem])
_SEARCH = TypeAdapter(_SearchPayload)
_PROFILE = TypeAdapter(_ProfilePayload)


class FinnhubAdapter:
    """Transforms validated Finnhub payloads into canonical records."""

    def adapt_quote(self, payload: _QuotePayload, symbol: str) -> Quote:
        fetched_at = (
            datetime.fromtimestamp(payload.t, tz=timezone.utc)
            if payload.t
            else datetime.now(timezone.utc)
        )
        return Quote(
            symbol=symbol,
            asset_type=AssetType.STOCK,
            current_price=max(payload.c, 0.0),
            change_24h=payload.d or 0.0,
            change_percent_24h=payload.dp or 0.0,
            fetched_at=fetched_at,
            source=Provider.FINNHUB,
            provider_id=symbol,
            name=symbol,
        )

    def adapt_candles(self, payload: _CandlePayload) -> list[Candle]:
        """Column arrays → candles. Finnhub times are already in seconds."""
        if payload.s != "ok":
            return []
        count = min(len(payload.t), len(payload.o), len(payload.h), len(payload.l), len(payload.c))
        candles = [
            Candle(
                time=payload.t[i],
                open=payload.o[i],
                high=payload.h[i],
                low=payload.l[i],
                close=payload.c[i],
                volume=payload.v[i] if i < len(payload.v) else 0.0,
            )
            for i in range(count)
        ]
        return sorted(candles, key=lambda c: c.time)

    def adapt_news(self, items: list[_NewsItem]) -> list[NewsArticle]:
        return [
            NewsArticle(
                id=str(item.id),
                title=item.headline,
                summary=item.summary,
                source=item.source,
                url=item.url,
                image_url=item.image or None,
                published_at=datetime.fromtimestamp(item.datetime, tz=timezone.utc),
                symbols=[s.strip().upper() for s in item.related.split(",") if s.strip()],
                category=item.category,
            )
            for item in items
        ]

    def adapt_search(self, payload: _SearchPayload) -> list[AssetSearchResult]:
        results: list[AssetSearchResult] = []
        for match in payload.result:
            if match.type not in _STOCK_SEARCH_TYPES:
                continue
            results.append(
                AssetSearchResult(
                    id=match.symbol,
                    symbol=match.displaySymbol or match.symbol,
                    name=match.description or match.symbol,
                    asset_type=AssetType.STOCK,
                )
            )
            if len(results) >= _SEARCH_LIMIT:
                break
        return results


class FinnhubProvider:
    """Fetches stock market data and news from Finnhub.

    Parameters
    ----------
    client : UpstreamClient
        HTTP session configured for the Finnhub base URL. Its ``api_key`` is
        required; without one every call raises ``UpstreamUnavailable``.
    adapter : FinnhubAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        client: UpstreamClient,
        adapter: FinnhubAdapter | None = None,
    ) -> None:
        self._client = client
        self._adapter = adapter or FinnhubAdapter()

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        api_key = self._client.api_key
        if not api_key:
            logger.warning("Finnhub API key not configured; skipping %s", path)
            raise UpstreamUnavailable(
                "Finnhub API key not configured",
                context={"provider": Provider.FINNHUB.value, "url": path},
            )
        return await self._client.get_json(
            path, params=params, headers={_TOKEN_HEADER: api_key}
        )

    async def get_quote(self, symbol: str) -> Quote:
        """Current price and day change. Unknown symbols come back zero-priced."""
        raw = await self._get(_QUOTE_PATH, {"symbol": symbol})
        payload = parse_payload(_QUOTE, raw, Provider.FINNHUB, _QUOTE_PATH)
        return self._adapter.adapt_quote(payload, symbol)

    async def get_history(
        self,
        symbol: str,
        window: StockWindow,
        now: datetime | None = None,
    ) -> list[Candle]:
        """Candles at ``window.resolution`` covering ``window.lookback``."""
        start, end = window.bounds(now)
        raw = await self._get(
            _CANDLE_PATH,
            {
                "symbol": symbol,
                "resolution": window.resolution,
                "from": start,
                "to": end,
            },
        )
        payload = parse_payload(_CANDLES, raw, Provider.FINNHUB, _CANDLE_PATH)
        return self._adapter.adapt_candles(payload)

    async def get_market_news(self, category: str = "general") -> list[NewsArticle]:
        raw = await self._get(_MARKET_NEWS_PATH, {"category": category})
        items = parse_payload(_NEWS, raw, Provider.FINNHUB, _MARKET_NEWS_PATH)
        return self._adapter.adapt_news(items)

    async def get_company_news(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[NewsArticle]:
        """Company news between ``start`` and ``end`` (default: the last week)."""
        end = end or datetime.now(timezone.utc).date()
        start = start or end - timedelta(days=_COMPANY_NEWS_DAYS)
        raw = await self._get(
            _COMPANY_NEWS_PATH,
            {"symbol": symbol, "from": start.isoformat(), "to": end.isoformat()},
        )
        items = parse_payload(_NEWS, raw, Provider.FINNHUB, _COMPANY_NEWS_PATH)
        return self._adapter.adapt_news(items)

    async def search(self, query: str) -> list[AssetSearchResult]:
        raw = await self._get(_SEARCH_PATH, {"q": query})
        payload = parse_payload(_SEARCH, raw, Provider.FINNHUB, _SEARCH_PATH)
        return self._adapter.adapt_search(payload)

    async def get_company_name(self, symbol: str) -> str | None:
        """Company display name, or None if Finnhub has no profile."""
        raw = await self._get(_PROFILE_PATH, {"symbol": symbol})
        payload = parse_payload(_PROFILE, raw, Provider.FINNHUB, _PROFILE_PATH)
        return payload.name or None
