"""Time-range → provider resolution tables.

Each caller-facing range maps to a fixed provider window. Adding a range or
retuning a window is a data change here, never a code branch elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from portfolio_pulse.core.models import TimeRange


@dataclass(frozen=True)
class ExchangeWindow:
    """Binance kline request shape: bar interval code and bar count."""

    interval: str
    limit: int


@dataclass(frozen=True)
class StockWindow:
    """Finnhub candle request shape: resolution code and lookback span."""

    resolution: str
    lookback: timedelta

    def bounds(self, now: datetime | None = None) -> tuple[int, int]:
        """Return (from, to) epoch seconds ending at ``now``."""
        end = now or datetime.now(timezone.utc)
        start = end - self.lookback
        return int(start.timestamp()), int(end.timestamp())


EXCHANGE_WINDOWS: dict[TimeRange, ExchangeWindow] = {
    TimeRange.ONE_DAY: ExchangeWindow("15m", 96),  # 24h of 15-minute bars
    TimeRange.ONE_WEEK: ExchangeWindow("1h", 168),
    TimeRange.ONE_MONTH: ExchangeWindow("4h", 180),
    TimeRange.THREE_MONTHS: ExchangeWindow("1d", 90),
    TimeRange.ONE_YEAR: ExchangeWindow("1d", 365),
    TimeRange.ALL: ExchangeWindow("1w", 200),  # ~4 years weekly
}

STOCK_WINDOWS: dict[TimeRange, StockWindow] = {
    TimeRange.ONE_DAY: StockWindow("15", timedelta(days=1)),
    TimeRange.ONE_WEEK: StockWindow("60", timedelta(days=7)),
    TimeRange.ONE_MONTH: StockWindow("60", timedelta(days=30)),
    TimeRange.THREE_MONTHS: StockWindow("D", timedelta(days=90)),
    TimeRange.ONE_YEAR: StockWindow("D", timedelta(days=365)),
    TimeRange.ALL: StockWindow("W", timedelta(weeks=200)),
}


def exchange_window(time_range: str | TimeRange | None) -> ExchangeWindow:
    return EXCHANGE_WINDOWS[TimeRange.parse(time_range)]


def stock_window(time_range: str | TimeRange | None) -> StockWindow:
    return STOCK_WINDOWS[TimeRange.parse(time_range)]
