"""portfolio_pulse.core — Foundation types, config, and exceptions."""

from portfolio_pulse.core.config import (
    APIConfig,
    CacheConfig,
    ProviderConfig,
    ProvidersConfig,
    PulseConfig,
    load_config,
)
from portfolio_pulse.core.exceptions import (
    CacheUnavailable,
    ConfigError,
    PortfolioPulseError,
    RateLimited,
    UpstreamUnavailable,
)
from portfolio_pulse.core.models import (
    AssetSearchResult,
    AssetType,
    CacheBackend,
    Candle,
    CoinMarket,
    HistoryResult,
    NewsArticle,
    PriceRequest,
    Provider,
    ProviderId,
    Quote,
    Symbol,
    TimeRange,
)

__all__ = [
    # Type aliases
    "Symbol",
    "ProviderId",
    # Enums
    "AssetType",
    "Provider",
    "TimeRange",
    "CacheBackend",
    # Market data models
    "PriceRequest",
    "Quote",
    "Candle",
    "HistoryResult",
    "CoinMarket",
    "NewsArticle",
    "AssetSearchResult",
    # Config
    "PulseConfig",
    "ProvidersConfig",
    "ProviderConfig",
    "CacheConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "PortfolioPulseError",
    "ConfigError",
    "UpstreamUnavailable",
    "RateLimited",
    "CacheUnavailable",
]
