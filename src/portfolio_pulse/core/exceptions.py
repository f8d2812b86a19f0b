"""Custom exception hierarchy for portfolio-pulse."""

from typing import Any


class PortfolioPulseError(Exception):
    """Base exception for all portfolio-pulse errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PortfolioPulseError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class UpstreamUnavailable(PortfolioPulseError):
    """A market-data provider could not deliver a usable response.

    Covers transport failures, timeouts, non-2xx statuses and payloads that
    fail schema validation.

    Policy: the aggregator converts it into a zero-price quote or an empty
    candle list for the affected symbols. Never retried in this layer.

    Context keys:
        provider: str — "binance", "coingecko" or "finnhub"
        url: str — the request path
        status_code: int | None — HTTP status code if applicable
    """


class RateLimited(UpstreamUnavailable):
    """Provider signalled quota exhaustion (HTTP 429 or an in-body note).

    Policy: same as UpstreamUnavailable. Surfacing a retry hint to end users
    is the caller's concern.

    Context keys:
        retry_after: int | None — seconds suggested by the provider
    """


class CacheUnavailable(PortfolioPulseError):
    """The cache store could not be reached.

    Policy: bypass the cache for the current call and fetch upstream.

    Context keys:
        operation: str — "get" or "set"
        key: str — the cache key involved
    """
