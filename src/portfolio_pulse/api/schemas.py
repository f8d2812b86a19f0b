"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from pydantic import BaseModel, Field

from portfolio_pulse.core.models import (
    AssetSearchResult,
    NewsArticle,
    PriceRequest,
    Quote,
)

# Upper bound on symbols per price request
MAX_PRICE_REQUESTS = 250


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    """Service health."""

    status: str
    version: str
    cache_backend: str


# -- Prices --


class PricesRequest(BaseModel):
    """POST /prices body. An empty list yields an empty response."""

    items: list[PriceRequest] = Field(default_factory=list, max_length=MAX_PRICE_REQUESTS)


class PricesResponse(BaseModel):
    """Quotes in request order, one per requested symbol."""

    prices: list[Quote]


# -- News & reference data --


class NewsResponse(BaseModel):
    news: list[NewsArticle]


class SearchResponse(BaseModel):
    results: list[AssetSearchResult]
