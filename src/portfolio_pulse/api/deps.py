"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from portfolio_pulse.api.schemas import ErrorResponse
from portfolio_pulse.core.config import PulseConfig
from portfolio_pulse.market.aggregator import MarketDataAggregator


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: PulseConfig
    aggregator: MarketDataAggregator


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> PulseConfig:
    """Dependency: retrieve config."""
    return get_app_state(request).config


def get_aggregator(request: Request) -> MarketDataAggregator:
    """Dependency: retrieve the market-data aggregator."""
    return get_app_state(request).aggregator


EXEMPT_PATHS = {"/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = get_app_state(request).config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content=ErrorResponse(
                    error="Unauthorized", detail="Invalid or missing API key"
                ).model_dump(),
            )
    return await call_next(request)
