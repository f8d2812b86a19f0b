"""Tests for the CLI module."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import click
import pytest
from click.testing import CliRunner

from portfolio_pulse.cli import _format_price, _parse_price_args, cli
from portfolio_pulse.core.models import AssetType, HistoryResult, Quote, TimeRange
from portfolio_pulse.market.aggregator import MarketDataAggregator


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_config():
    """Minimal PulseConfig mock for CLI tests."""
    config = MagicMock()
    config.api.host = "127.0.0.1"
    config.api.port = 8000
    return config


@pytest.fixture
def fake_aggregator() -> AsyncMock:
    return AsyncMock(spec=MarketDataAggregator)


@pytest.fixture
def patched(mock_config, fake_aggregator):
    with patch("portfolio_pulse.core.load_config", return_value=mock_config), patch(
        "portfolio_pulse.market.aggregator.create_aggregator", return_value=fake_aggregator
    ) as factory:
        yield factory


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestParsePriceArgs:
    def test_default_type(self):
        (req,) = _parse_price_args(("btc",), "CRYPTO")
        assert req.symbol == "BTC"
        assert req.asset_type == AssetType.CRYPTO

    def test_type_suffix(self):
        reqs = _parse_price_args(("BTC", "aapl:stock"), "CRYPTO")
        assert [r.asset_type for r in reqs] == [AssetType.CRYPTO, AssetType.STOCK]

    def test_bad_type(self):
        with pytest.raises(click.BadParameter):
            _parse_price_args(("AAPL:BOND",), "CRYPTO")


class TestFormatPrice:
    def test_unavailable(self):
        assert "n/a" in _format_price(0)

    def test_small_values_keep_precision(self):
        assert _format_price(0.00001234) == "0.00001234"

    def test_large_values(self):
        assert _format_price(67250.5) == "67,250.50"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCliGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Portfolio Pulse" in result.output

    def test_prices_help(self, runner):
        result = runner.invoke(cli, ["prices", "--help"])
        assert result.exit_code == 0
        assert "--type" in result.output


class TestPricesCommand:
    def test_table(self, runner, patched, fake_aggregator, aapl_quote):
        fake_aggregator.get_prices.return_value = [
            aapl_quote,
            Quote.unavailable("ZZZ", AssetType.CRYPTO),
        ]

        result = runner.invoke(cli, ["prices", "AAPL:STOCK", "ZZZ"])

        assert result.exit_code == 0, result.output
        assert "AAPL" in result.output
        assert "No price available for: ZZZ" in result.output
        fake_aggregator.close.assert_awaited_once()

    def test_json(self, runner, patched, fake_aggregator, aapl_quote):
        fake_aggregator.get_prices.return_value = [aapl_quote]

        result = runner.invoke(cli, ["prices", "--json", "AAPL:STOCK"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload[0]["symbol"] == "AAPL"
        assert payload[0]["current_price"] == 194.35

    def test_requires_symbols(self, runner):
        result = runner.invoke(cli, ["prices"])
        assert result.exit_code != 0


class TestHistoryCommand:
    def test_summary(self, runner, patched, fake_aggregator, sample_candles, btc_ticker_quote):
        fake_aggregator.get_history.return_value = HistoryResult(
            symbol="BTC",
            asset_type=AssetType.CRYPTO,
            time_range=TimeRange.ONE_MONTH,
            candles=tuple(sample_candles),
            latest_quote=btc_ticker_quote,
        )

        result = runner.invoke(cli, ["history", "BTC", "--range", "1M"])

        assert result.exit_code == 0, result.output
        assert "Candles" in result.output
        fake_aggregator.get_history.assert_awaited_once_with("BTC", "CRYPTO", "1M")

    def test_no_candles(self, runner, patched, fake_aggregator):
        fake_aggregator.get_history.return_value = HistoryResult(
            symbol="ZZZ",
            asset_type=AssetType.CRYPTO,
            time_range=TimeRange.THREE_MONTHS,
            latest_quote=Quote.unavailable("ZZZ", AssetType.CRYPTO),
        )
        result = runner.invoke(cli, ["history", "ZZZ"])
        assert result.exit_code == 0
        assert "No candles" in result.output

    def test_json(self, runner, patched, fake_aggregator, btc_ticker_quote):
        fake_aggregator.get_history.return_value = HistoryResult(
            symbol="BTC",
            asset_type=AssetType.CRYPTO,
            time_range=TimeRange.ONE_DAY,
            latest_quote=btc_ticker_quote,
        )
        result = runner.invoke(cli, ["history", "BTC", "-r", "1D", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["time_range"] == "1D"


class TestNewsCommand:
    def test_news(self, runner, patched, fake_aggregator, sample_articles):
        fake_aggregator.get_news.return_value = sample_articles
        result = runner.invoke(cli, ["news", "--symbol", "BTC", "--type", "crypto"])
        assert result.exit_code == 0
        assert "Bitcoin rallies" in result.output
        fake_aggregator.get_news.assert_awaited_once_with("BTC", "CRYPTO", "general")

    def test_empty(self, runner, patched, fake_aggregator):
        fake_aggregator.get_news.return_value = []
        result = runner.invoke(cli, ["news"])
        assert result.exit_code == 0
        assert "No news available" in result.output


class TestServeCommand:
    def test_uses_config_defaults(self, runner, patched):
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(cli, ["serve"])
        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["factory"] is True
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8000
