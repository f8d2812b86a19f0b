"""End-to-end aggregator flows over the real adapters with mocked HTTP."""

from __future__ import annotations

import httpx
import respx

from portfolio_pulse.core.models import AssetType, PriceRequest, Provider

BINANCE = "https://api.binance.com"
COINGECKO = "https://api.coingecko.com/api/v3"
FINNHUB = "https://finnhub.io/api/v1"


def _req(symbol: str, asset_type: str) -> PriceRequest:
    return PriceRequest(symbol=symbol, asset_type=asset_type)


class TestPricesPipeline:
    @respx.mock
    async def test_mixed_portfolio(self, live_aggregator, btc_eth_markets):
        markets = respx.get(f"{COINGECKO}/coins/markets").mock(
            return_value=httpx.Response(200, json=btc_eth_markets[:1])
        )
        quote = respx.get(f"{FINNHUB}/quote").mock(
            return_value=httpx.Response(200, json={"c": 194.35, "d": 1.2, "dp": 0.62, "t": 1717430400})
        )

        quotes = await live_aggregator.get_prices(
            [_req("BTC", "CRYPTO"), _req("ZZZ", "CRYPTO"), _req("AAPL", "STOCK")]
        )

        assert [q.symbol for q in quotes] == ["BTC", "ZZZ", "AAPL"]
        assert quotes[0].current_price == 67250.0
        assert quotes[1].current_price == 0
        assert quotes[2].current_price == 194.35
        assert markets.call_count == 1
        assert markets.calls.last.request.url.params["ids"] == "bitcoin"
        assert quote.call_count == 1

    @respx.mock
    async def test_second_call_served_from_cache(self, live_aggregator, btc_eth_markets):
        markets = respx.get(f"{COINGECKO}/coins/markets").mock(
            return_value=httpx.Response(200, json=btc_eth_markets)
        )

        first = await live_aggregator.get_prices([_req("ETH", "CRYPTO"), _req("BTC", "CRYPTO")])
        second = await live_aggregator.get_prices([_req("BTC", "CRYPTO"), _req("ETH", "CRYPTO")])

        assert markets.call_count == 1
        assert first[0] == second[1]
        assert first[1] == second[0]

    @respx.mock
    async def test_rate_limited_metadata_falls_back_to_exchange(self, live_aggregator):
        respx.get(f"{COINGECKO}/coins/markets").mock(
            return_value=httpx.Response(429, headers={"Retry-After": "60"})
        )
        respx.get(f"{BINANCE}/api/v3/ticker/price").mock(
            return_value=httpx.Response(200, json={"symbol": "BTCUSDT", "price": "67190.00"})
        )

        (btc,) = await live_aggregator.get_prices([_req("BTC", "CRYPTO")])

        assert btc.current_price == 67190.0
        assert btc.source == Provider.BINANCE
        assert btc.change_percent_24h == 0

    @respx.mock
    async def test_stock_outage_is_isolated(self, live_aggregator):
        def _quote(request: httpx.Request) -> httpx.Response:
            if request.url.params["symbol"] == "MSFT":
                return httpx.Response(500)
            return httpx.Response(200, json={"c": 100.0, "d": 1.0, "dp": 1.0, "t": 1717430400})

        respx.get(f"{FINNHUB}/quote").mock(side_effect=_quote)

        aapl, msft = await live_aggregator.get_prices([_req("AAPL", "STOCK"), _req("MSFT", "STOCK")])

        assert aapl.current_price == 100.0
        assert msft.current_price == 0


class TestHistoryPipeline:
    @respx.mock
    async def test_crypto_chart(self, live_aggregator):
        klines = respx.get(f"{BINANCE}/api/v3/klines").mock(
            return_value=httpx.Response(
                200,
                json=[
                    [1717200000000, "66500", "67100", "66200", "67000", "905", 1717286399999],
                    [1717286400000, "67000", "67500", "66800", "67250", "812", 1717372799999],
                ],
            )
        )
        respx.get(f"{BINANCE}/api/v3/ticker/24hr").mock(
            return_value=httpx.Response(
                200,
                json={"symbol": "BTCUSDT", "lastPrice": "67250", "priceChange": "250", "priceChangePercent": "0.37"},
            )
        )

        result = await live_aggregator.get_history("BTC", AssetType.CRYPTO, "1D")

        params = klines.calls.last.request.url.params
        assert (params["interval"], params["limit"]) == ("15m", "96")
        assert [c.time for c in result.candles] == [1717200000, 1717286400]
        assert result.latest_quote.current_price == 67250.0

    @respx.mock
    async def test_stock_chart_without_data(self, live_aggregator):
        respx.get(f"{FINNHUB}/stock/candle").mock(
            return_value=httpx.Response(200, json={"s": "no_data"})
        )
        respx.get(f"{FINNHUB}/quote").mock(
            return_value=httpx.Response(200, json={"c": 0, "d": None, "dp": None, "t": 0})
        )

        result = await live_aggregator.get_history("NOPE", AssetType.STOCK, "ALL")

        assert result.candles == ()
        assert result.latest_quote.current_price == 0
