"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio_pulse.api.deps import AppState, api_key_middleware
from portfolio_pulse.api.routes import router
from portfolio_pulse.api.schemas import ErrorResponse
from portfolio_pulse.core.config import PulseConfig, load_config
from portfolio_pulse.core.exceptions import (
    CacheUnavailable,
    ConfigError,
    PortfolioPulseError,
    RateLimited,
    UpstreamUnavailable,
)
from portfolio_pulse.market.aggregator import MarketDataAggregator, create_aggregator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    aggregator = app.state._pending_aggregator or create_aggregator(config)

    app.state.app_state = AppState(config=config, aggregator=aggregator)
    logger.info("Market data service started (cache=%s)", config.cache.backend.value)

    yield

    await aggregator.close()


def create_app(
    config: PulseConfig | None = None,
    aggregator: MarketDataAggregator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    import portfolio_pulse

    app = FastAPI(
        title="Portfolio Pulse API",
        description="Normalized, cached market data for portfolio tracking",
        version=portfolio_pulse.__version__,
        lifespan=lifespan,
    )

    # Stash so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_aggregator = aggregator

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API key check; a no-op unless config.api.api_key is set
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    # Exception handlers
    @app.exception_handler(PortfolioPulseError)
    async def pulse_exception_handler(request: Request, exc: PortfolioPulseError):
        status_map = {
            ConfigError: 400,
            UpstreamUnavailable: 502,
            RateLimited: 502,
            CacheUnavailable: 500,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app
