"""FastAPI route definitions for the Portfolio Pulse API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

import portfolio_pulse
from portfolio_pulse.api.deps import get_aggregator, get_config
from portfolio_pulse.api.schemas import (
    MAX_PRICE_REQUESTS,
    HealthResponse,
    NewsResponse,
    PricesRequest,
    PricesResponse,
    SearchResponse,
)
from portfolio_pulse.core.models import AssetType, HistoryResult, PriceRequest
from portfolio_pulse.market.aggregator import MarketDataAggregator

router = APIRouter()


def _asset_type(raw: str | None, default: AssetType | None = None) -> AssetType | None:
    if raw is None or not raw.strip():
        return default
    try:
        return AssetType(raw.strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown asset type '{raw}'. Use CRYPTO or STOCK.",
        )


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(config=Depends(get_config)):
    """Service health and configured cache backend."""
    return HealthResponse(
        status="ok",
        version=portfolio_pulse.__version__,
        cache_backend=str(config.cache.backend.value),
    )


# -- Prices --


@router.get("/prices", response_model=PricesResponse)
async def get_prices(
    symbols: str = Query("", description="Comma-separated symbols"),
    type: str | None = Query(None, description="CRYPTO or STOCK"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Current prices for symbols of one asset type."""
    asset_type = _asset_type(type, AssetType.CRYPTO)
    requested = [s.strip() for s in symbols.split(",") if s.strip()]
    if len(requested) > MAX_PRICE_REQUESTS:
        raise HTTPException(
            status_code=422,
            detail=f"At most {MAX_PRICE_REQUESTS} symbols per request",
        )

    quotes = await aggregator.get_prices(
        [PriceRequest(symbol=s, asset_type=asset_type) for s in requested]
    )
    return PricesResponse(prices=quotes)


@router.post("/prices", response_model=PricesResponse)
async def post_prices(
    body: PricesRequest,
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Current prices for a mixed batch of crypto and stock symbols."""
    quotes = await aggregator.get_prices(body.items)
    return PricesResponse(prices=quotes)


# -- Charts --


@router.get("/charts", response_model=HistoryResult)
async def get_chart(
    symbol: str = Query(..., min_length=1),
    type: str | None = Query(None, description="CRYPTO or STOCK"),
    time_range: str | None = Query(None, description="1D, 1W, 1M, 3M, 1Y or ALL"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Candles and latest quote. Unknown ranges fall back to 3M."""
    asset_type = _asset_type(type, AssetType.CRYPTO)
    return await aggregator.get_history(symbol, asset_type, time_range)


# -- News --


@router.get("/news", response_model=NewsResponse)
async def get_news(
    symbol: str | None = Query(None),
    type: str | None = Query(None, description="CRYPTO or STOCK"),
    category: str = Query("general"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Market news, or news for one symbol."""
    asset_type = _asset_type(type)
    articles = await aggregator.get_news(symbol, asset_type, category)
    return NewsResponse(news=articles)


@router.get("/news/portfolio", response_model=NewsResponse)
async def get_portfolio_news(
    stocks: str = Query("", description="Comma-separated stock symbols"),
    cryptos: str = Query("", description="Comma-separated crypto symbols"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Merged news for a set of holdings, newest first."""
    articles = await aggregator.get_portfolio_news(
        [s for s in stocks.split(",") if s.strip()],
        [s for s in cryptos.split(",") if s.strip()],
    )
    return NewsResponse(news=articles)


# -- Reference data --


@router.get("/search", response_model=SearchResponse)
async def search_assets(
    q: str = Query(""),
    type: str | None = Query(None, description="CRYPTO or STOCK"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Asset search. Queries shorter than 2 characters match nothing."""
    results = await aggregator.search_assets(q, _asset_type(type))
    return SearchResponse(results=results)


@router.get("/popular", response_model=SearchResponse)
async def popular_assets(
    type: str | None = Query(None, description="CRYPTO or STOCK"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Well-known assets for quick selection."""
    results = await aggregator.get_popular_assets(_asset_type(type, AssetType.CRYPTO))
    return SearchResponse(results=results)
