"""Binance exchange adapter: klines, 24h ticker and spot price.

Uses the public ``/api/v3`` market endpoints; no API key is required.
Binance answers HTTP 400 for unknown trading pairs, which this adapter reads
as "no data" rather than a transport failure.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, TypeAdapter, model_validator

from portfolio_pulse.core.exceptions import UpstreamUnavailable
from portfolio_pulse.core.models import AssetType, Candle, Provider, Quote
from portfolio_pulse.market.http import UpstreamClient, parse_payload
from portfolio_pulse.market.ranges import ExchangeWindow
from portfolio_pulse.market.symbols import EXCHANGE_QUOTE_ASSET

logger = logging.getLogger(__name__)

_KLINES_PATH = "/api/v3/klines"
_TICKER_24H_PATH = "/api/v3/ticker/24hr"
_TICKER_PRICE_PATH = "/api/v3/ticker/price"

_KLINE_FIELDS = ("open_time", "open", "high", "low", "close", "volume")


# --- Response schemas ---


class _Kline(BaseModel):
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @model_validator(mode="before")
    @classmethod
    def from_row(cls, data: Any) -> Any:
        # [openTime, open, high, low, close, volume, closeTime, ...]
        if isinstance(data, (list, tuple)):
            if len(data) < len(_KLINE_FIELDS):
                raise ValueError(f"kline row has {len(data)} fields, expected >= 6")
            return dict(zip(_KLINE_FIELDS, data))
        return data


class _Ticker24h(BaseModel):
    symbol: str
    lastPrice: float
    priceChange: float = 0.0
    priceChangePercent: float = 0.0


class _TickerPrice(BaseModel):
    symbol: str
    price: float


_KLINES = TypeAdapter(list[_Kline])
_TICKER_24H = TypeAdapter(_Ticker24h)
_TICKER_PRICE = TypeAdapter(_TickerPrice)


def pair_to_symbol(pair: str) -> str:
    """BTCUSDT -> BTC."""
    if pair.endswith(EXCHANGE_QUOTE_ASSET) and len(pair) > len(EXCHANGE_QUOTE_ASSET):
        return pair[: -len(EXCHANGE_QUOTE_ASSET)]
    return pair


class BinanceAdapter:
    """Transforms validated Binance payloads into canonical records."""

    def adapt_klines(self, rows: list[_Kline]) -> list[Candle]:
        """Convert klines to candles. Binance open times are milliseconds."""
        candles = [
            Candle(
                time=row.open_time // 1000,
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=row.volume,
            )
            for row in rows
        ]
        return sorted(candles, key=lambda c: c.time)

    def adapt_ticker(self, ticker: _Ticker24h, pair: str) -> Quote:
        return Quote(
            symbol=pair_to_symbol(pair),
            asset_type=AssetType.CRYPTO,
            current_price=max(ticker.lastPrice, 0.0),
            change_24h=ticker.priceChange,
            change_percent_24h=ticker.priceChangePercent,
            fetched_at=datetime.now(timezone.utc),
            source=Provider.BINANCE,
            provider_id=pair,
        )

    def adapt_price(self, ticker: _TickerPrice, pair: str) -> Quote:
        """Spot price only; the 24h change fields stay zero."""
        return Quote(
            symbol=pair_to_symbol(pair),
            asset_type=AssetType.CRYPTO,
            current_price=max(ticker.price, 0.0),
            fetched_at=datetime.now(timezone.utc),
            source=Provider.BINANCE,
            provider_id=pair,
        )


class BinanceProvider:
    """Fetches crypto candles and tickers from Binance.

    Parameters
    ----------
    client : UpstreamClient
        HTTP session configured for the Binance base URL.
    adapter : BinanceAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        client: UpstreamClient,
        adapter: BinanceAdapter | None = None,
    ) -> None:
        self._client = client
        self._adapter = adapter or BinanceAdapter()

    async def _get(self, path: str, params: dict[str, Any]) -> Any | None:
        """GET a market endpoint; None when Binance rejects the pair."""
        try:
            return await self._client.get_json(path, params=params)
        except UpstreamUnavailable as e:
            if e.context.get("status_code") == 400:
                logger.info("Binance has no market for %s", params.get("symbol"))
                return None
            raise

    async def get_quote(self, pair: str) -> Quote:
        """Last price and 24h change for a trading pair."""
        raw = await self._get(_TICKER_24H_PATH, {"symbol": pair})
        if raw is None:
            return Quote.unavailable(pair_to_symbol(pair), AssetType.CRYPTO, pair)
        ticker = parse_payload(_TICKER_24H, raw, Provider.BINANCE, _TICKER_24H_PATH)
        return self._adapter.adapt_ticker(ticker, pair)

    async def get_price(self, pair: str) -> Quote:
        """Lightweight spot price, used as the degraded crypto source."""
        raw = await self._get(_TICKER_PRICE_PATH, {"symbol": pair})
        if raw is None:
            return Quote.unavailable(pair_to_symbol(pair), AssetType.CRYPTO, pair)
        ticker = parse_payload(_TICKER_PRICE, raw, Provider.BINANCE, _TICKER_PRICE_PATH)
        return self._adapter.adapt_price(ticker, pair)

    async def get_history(self, pair: str, window: ExchangeWindow) -> list[Candle]:
        """Klines at ``window.interval`` resolution, ``window.limit`` bars."""
        raw = await self._get(
            _KLINES_PATH,
            {"symbol": pair, "interval": window.interval, "limit": window.limit},
        )
        if raw is None:
            return []
        rows = parse_payload(_KLINES, raw, Provider.BINANCE, _KLINES_PATH)
        return self._adapter.adapt_klines(rows)
