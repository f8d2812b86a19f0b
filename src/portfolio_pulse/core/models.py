"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Type Aliases ---

Symbol = str
ProviderId = str

# --- Enumerations ---


class AssetType(StrEnum):
    """Asset classes; each one selects its authoritative price provider."""

    CRYPTO = "CRYPTO"
    STOCK = "STOCK"


class Provider(StrEnum):
    """Upstream market-data providers."""

    BINANCE = "binance"
    COINGECKO = "coingecko"
    FINNHUB = "finnhub"


class TimeRange(StrEnum):
    """Caller-facing chart time ranges."""

    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    ONE_YEAR = "1Y"
    ALL = "ALL"

    @classmethod
    def parse(cls, value: str | None) -> TimeRange:
        """Resolve a raw range string, defaulting to 3M for anything unknown."""
        if value is None:
            return cls.THREE_MONTHS
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.THREE_MONTHS


class CacheBackend(StrEnum):
    """Supported cache store backends."""

    REDIS = "redis"
    MEMORY = "memory"
    NONE = "none"


# --- Market Data Models ---


class PriceRequest(BaseModel):
    """One (symbol, asset type) pair in a batch price lookup."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    asset_type: AssetType = AssetType.CRYPTO

    @field_validator("symbol")
    @classmethod
    def symbol_uppercase(cls, v: str) -> str:
        normalized = v.strip().upper()
        if not normalized:
            raise ValueError("symbol must not be empty")
        return normalized

    @field_validator("asset_type", mode="before")
    @classmethod
    def asset_type_uppercase(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class Quote(BaseModel):
    """A point-in-time price observation for one symbol.

    ``current_price == 0`` is the explicit "unavailable" sentinel. Every
    field of a quote comes from a single provider, named by ``source``.
    """

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    asset_type: AssetType
    current_price: float = 0.0
    change_24h: float = 0.0
    change_percent_24h: float = 0.0
    fetched_at: datetime | None = None
    source: Provider | None = None
    provider_id: ProviderId | None = None
    name: str | None = None
    image: str | None = None
    market_cap_rank: int | None = None

    @field_validator("current_price")
    @classmethod
    def price_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"current_price must be >= 0, got {v}")
        return v

    @property
    def available(self) -> bool:
        return self.current_price > 0

    @classmethod
    def unavailable(
        cls,
        symbol: str,
        asset_type: AssetType,
        provider_id: str | None = None,
    ) -> Quote:
        """Zero-price placeholder for a symbol that could not be priced."""
        return cls(
            symbol=symbol.upper(),
            asset_type=asset_type,
            provider_id=provider_id,
            name=symbol.upper(),
        )


class Candle(BaseModel):
    """One OHLCV bar. ``time`` is the interval start in epoch seconds.

    OHLC consistency is not validated; upstream data is trusted as-is.
    """

    model_config = ConfigDict(frozen=True)

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class HistoryResult(BaseModel):
    """Chart payload: ordered candles plus the latest quote."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    asset_type: AssetType
    time_range: TimeRange
    candles: tuple[Candle, ...] = ()
    latest_quote: Quote


class CoinMarket(BaseModel):
    """Normalized coin metadata row from the metadata provider."""

    model_config = ConfigDict(frozen=True)

    id: ProviderId
    symbol: str
    name: str
    image: str | None = None
    current_price: float = 0.0
    price_change_24h: float | None = None
    price_change_percentage_24h: float | None = None
    market_cap: float | None = None
    market_cap_rank: int | None = None


class NewsArticle(BaseModel):
    """A news article normalized from the news provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    summary: str = ""
    source: str = ""
    url: str
    image_url: str | None = None
    published_at: datetime
    symbols: list[str] = Field(default_factory=list)
    category: str | None = None


class AssetSearchResult(BaseModel):
    """One match from an asset search or the popular-assets list."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: Symbol
    name: str
    asset_type: AssetType
    image: str | None = None
