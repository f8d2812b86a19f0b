"""Rate-limited async HTTP client shared by the provider adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

import httpx
from aiolimiter import AsyncLimiter
from pydantic import TypeAdapter, ValidationError

from portfolio_pulse.core.config import ProviderConfig
from portfolio_pulse.core.exceptions import RateLimited, UpstreamUnavailable
from portfolio_pulse.core.models import Provider

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; portfolio-pulse/0.1)"

T = TypeVar("T")


class UpstreamClient:
    """One provider's HTTP session: base URL, fixed timeout, per-minute budget.

    Failures are never retried here. Every failure mode surfaces as
    ``UpstreamUnavailable`` (or its ``RateLimited`` subclass) so callers
    handle a single exception family.

    Use via ``async with UpstreamClient(...) as client:`` or call ``close()``.
    """

    def __init__(
        self,
        provider: Provider,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self._config = config
        self._limiter = AsyncLimiter(
            max_rate=config.rate_limit_per_minute, time_period=60.0
        )
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
            timeout=httpx.Timeout(config.timeout_seconds),
            transport=transport,
        )

    @property
    def api_key(self) -> str | None:
        return self._config.api_key

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            RateLimited: HTTP 429, or no request budget freed up within the
                timeout.
            UpstreamUnavailable: timeout, connection failure, other non-2xx
                status, or a body that is not valid JSON.
        """
        context: dict[str, Any] = {"provider": self.provider.value, "url": path}

        try:
            await asyncio.wait_for(
                self._limiter.acquire(), timeout=self._config.timeout_seconds
            )
        except TimeoutError as e:
            logger.warning("%s request budget exhausted: %s", self.provider.value, path)
            raise RateLimited(
                f"{self.provider.value} request budget exhausted: {path}",
                context=context,
            ) from e

        try:
            response = await self._client.get(path, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("%s request timed out: %s", self.provider.value, path)
            raise UpstreamUnavailable(
                f"{self.provider.value} timed out: {path}", context=context
            ) from e
        except httpx.RequestError as e:
            logger.error("%s request error for %s: %s", self.provider.value, path, e)
            raise UpstreamUnavailable(
                f"{self.provider.value} request failed: {path}", context=context
            ) from e

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(
                "%s rate limited on %s (retry after %s)",
                self.provider.value,
                path,
                retry_after,
            )
            raise RateLimited(
                f"{self.provider.value} rate limit exceeded: {path}",
                context={**context, "status_code": 429, "retry_after": retry_after},
            )

        if not response.is_success:
            logger.error(
                "%s HTTP error for %s: %s %s",
                self.provider.value,
                path,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamUnavailable(
                f"HTTP {response.status_code} from {self.provider.value}: {path}",
                context={**context, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error("%s returned invalid JSON for %s", self.provider.value, path)
            raise UpstreamUnavailable(
                f"{self.provider.value} returned malformed JSON: {path}",
                context={**context, "status_code": response.status_code},
            ) from e


def _parse_retry_after(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_payload(
    schema: TypeAdapter[T], payload: Any, provider: Provider, path: str
) -> T:
    """Validate a decoded body against the provider's response schema.

    Raises:
        UpstreamUnavailable: the payload does not match the schema.
    """
    try:
        return schema.validate_python(payload)
    except ValidationError as e:
        logger.error(
            "%s returned an unexpected payload for %s: %s",
            provider.value,
            path,
            e.errors(include_url=False)[:3],
        )
        raise UpstreamUnavailable(
            f"{provider.value} returned a malformed payload: {path}",
            context={"provider": provider.value, "url": path},
        ) from e
