"""Static ticker → provider-native identifier tables.

CoinGecko identifies coins by slug ("bitcoin"), Binance by trading pair
("BTCUSDT"). A symbol missing from a table cannot be priced by that provider;
callers treat ``None`` as "skip the upstream call".
"""

from __future__ import annotations

from portfolio_pulse.core.models import Provider

SYMBOL_TO_COINGECKO_ID: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "SOL": "solana",
    "XRP": "ripple",
    "USDC": "usd-coin",
    "ADA": "cardano",
    "AVAX": "avalanche-2",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "TRX": "tron",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "SHIB": "shiba-inu",
    "LTC": "litecoin",
    "ATOM": "cosmos",
    "UNI": "uniswap",
    "XLM": "stellar",
    "NEAR": "near",
    "APT": "aptos",
    "ARB": "arbitrum",
    "OP": "optimism",
    "INJ": "injective-protocol",
    "SUI": "sui",
}

# Quote currency for exchange pairs
EXCHANGE_QUOTE_ASSET = "USDT"

SYMBOL_TO_EXCHANGE_PAIR: dict[str, str] = {
    symbol: f"{symbol}{EXCHANGE_QUOTE_ASSET}"
    for symbol in SYMBOL_TO_COINGECKO_ID
    if symbol not in ("USDT", "USDC")
}
SYMBOL_TO_EXCHANGE_PAIR.update(
    {
        "USDC": "USDCUSDT",
        "ALGO": "ALGOUSDT",
        "VET": "VETUSDT",
        "FIL": "FILUSDT",
        "ETC": "ETCUSDT",
        "SEI": "SEIUSDT",
        "PEPE": "PEPEUSDT",
        "BONK": "BONKUSDT",
    }
)

_TABLES: dict[Provider, dict[str, str]] = {
    Provider.COINGECKO: SYMBOL_TO_COINGECKO_ID,
    Provider.BINANCE: SYMBOL_TO_EXCHANGE_PAIR,
}

POPULAR_CRYPTO_IDS: tuple[str, ...] = (
    "bitcoin",
    "ethereum",
    "binancecoin",
    "solana",
    "ripple",
    "cardano",
    "avalanche-2",
    "dogecoin",
    "polkadot",
    "chainlink",
)

POPULAR_STOCK_SYMBOLS: tuple[str, ...] = (
    "AAPL",
    "MSFT",
    "GOOGL",
    "AMZN",
    "TSLA",
    "META",
    "NVDA",
    "JPM",
    "V",
    "JNJ",
)


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def map_to_provider_id(
    symbol: str, provider: Provider = Provider.COINGECKO
) -> str | None:
    """Translate a ticker to the provider's native id, or None if unmapped.

    Case-insensitive. Providers without a table (stock quotes take the ticker
    verbatim) also return None.
    """
    table = _TABLES.get(provider)
    if table is None:
        return None
    return table.get(normalize_symbol(symbol))


def supported_symbols(provider: Provider = Provider.COINGECKO) -> list[str]:
    """All tickers the provider table can price, sorted."""
    return sorted(_TABLES.get(provider, {}))
