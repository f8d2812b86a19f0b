"""Click-based CLI for portfolio-pulse.

Thin wrapper around the aggregator. Every command builds one aggregator from
config, runs a single request against it, renders the result and closes it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)

_TYPE_CHOICE = click.Choice(["CRYPTO", "STOCK"], case_sensitive=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from portfolio_pulse.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _build_aggregator(ctx: click.Context):
    from portfolio_pulse.market import aggregator

    return aggregator.create_aggregator(_load_config(ctx))


def _parse_price_args(args: tuple[str, ...], default_type: str) -> list:
    """``BTC`` or ``AAPL:STOCK`` → PriceRequest."""
    from portfolio_pulse.core import PriceRequest

    requests = []
    for arg in args:
        symbol, _, asset_type = arg.partition(":")
        try:
            requests.append(
                PriceRequest(symbol=symbol, asset_type=asset_type or default_type)
            )
        except ValueError as e:
            raise click.BadParameter(f"{arg!r}: {e}", param_hint="SYMBOLS")
    return requests


def _format_price(value: float) -> str:
    if value == 0:
        return "[dim]n/a[/dim]"
    return f"{value:,.8f}" if value < 1 else f"{value:,.2f}"


def _format_change(percent: float) -> str:
    colour = "green" if percent >= 0 else "red"
    return f"[{colour}]{percent:+.2f}%[/{colour}]"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PORTFOLIO_PULSE_CONFIG",
    default=None,
    help="Path to portfolio-pulse.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="portfolio-pulse")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Portfolio Pulse: normalized, cached market data."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--type",
    "-t",
    "asset_type",
    type=_TYPE_CHOICE,
    default="CRYPTO",
    help="Asset type for symbols without a :TYPE suffix.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
@click.pass_context
def prices(ctx: click.Context, symbols: tuple[str, ...], asset_type: str, as_json: bool) -> None:
    """Current prices, e.g. ``prices BTC ETH AAPL:STOCK``."""
    requests = _parse_price_args(symbols, asset_type.upper())

    async def _run():
        aggregator = _build_aggregator(ctx)
        try:
            return await aggregator.get_prices(requests)
        finally:
            await aggregator.close()

    quotes = _run_async(_run())

    if as_json:
        click.echo(json.dumps([q.model_dump(mode="json") for q in quotes], indent=2))
        return

    table = Table(title="Prices")
    table.add_column("Symbol", style="bold")
    table.add_column("Type")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Source")

    for q in quotes:
        table.add_row(
            q.symbol,
            q.asset_type.value,
            _format_price(q.current_price),
            _format_change(q.change_percent_24h) if q.available else "",
            q.source.value if q.source else "-",
        )
    console.print(table)

    missing = [q.symbol for q in quotes if not q.available]
    if missing:
        console.print(f"[yellow]No price available for: {', '.join(missing)}[/yellow]")


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option("--type", "-t", "asset_type", type=_TYPE_CHOICE, default="CRYPTO")
@click.option(
    "--range",
    "-r",
    "time_range",
    type=str,
    default="3M",
    help="1D, 1W, 1M, 3M, 1Y or ALL (unknown values use 3M).",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
@click.pass_context
def history(
    ctx: click.Context,
    symbol: str,
    asset_type: str,
    time_range: str,
    as_json: bool,
) -> None:
    """Candle history and latest quote for one symbol."""

    async def _run():
        aggregator = _build_aggregator(ctx)
        try:
            return await aggregator.get_history(symbol, asset_type.upper(), time_range)
        finally:
            await aggregator.close()

    result = _run_async(_run())

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    if not result.candles:
        console.print(f"[yellow]No candles for {result.symbol} ({result.time_range.value}).[/yellow]")
        return

    candles = result.candles
    first, last = candles[0], candles[-1]
    change = (last.close - first.open) / first.open * 100 if first.open else 0.0

    table = Table(title=f"{result.symbol} {result.time_range.value}")
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Candles", str(len(candles)))
    table.add_row("From", _format_time(first.time))
    table.add_row("To", _format_time(last.time))
    table.add_row("Open", _format_price(first.open))
    table.add_row("Close", _format_price(last.close))
    table.add_row("High", _format_price(max(c.high for c in candles)))
    table.add_row("Low", _format_price(min(c.low for c in candles)))
    table.add_row("Change", _format_change(change))
    table.add_row("Latest", _format_price(result.latest_quote.current_price))
    console.print(table)


def _format_time(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


# ---------------------------------------------------------------------------
# news
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--symbol", "-s", type=str, default=None, help="Symbol to filter on.")
@click.option("--type", "-t", "asset_type", type=_TYPE_CHOICE, default=None)
@click.option("--category", type=str, default="general", help="Market news category.")
@click.option("--limit", "-n", type=int, default=10, show_default=True)
@click.pass_context
def news(
    ctx: click.Context,
    symbol: str | None,
    asset_type: str | None,
    category: str,
    limit: int,
) -> None:
    """Latest market or symbol news."""

    async def _run():
        aggregator = _build_aggregator(ctx)
        try:
            return await aggregator.get_news(symbol, asset_type, category)
        finally:
            await aggregator.close()

    articles = _run_async(_run())[:limit]
    if not articles:
        console.print("[yellow]No news available.[/yellow]")
        return

    table = Table(title="News")
    table.add_column("Published")
    table.add_column("Source")
    table.add_column("Headline", style="bold")
    for a in articles:
        table.add_row(a.published_at.strftime("%Y-%m-%d %H:%M"), a.source, a.title)
    console.print(table)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # the app factory reloads config in the server process
    if ctx.obj.get("config_path"):
        os.environ["PORTFOLIO_PULSE_CONFIG"] = os.path.abspath(ctx.obj["config_path"])

    console.print(f"Starting portfolio-pulse API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "portfolio_pulse.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )
