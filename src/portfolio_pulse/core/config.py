"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from portfolio_pulse.core.exceptions import ConfigError
from portfolio_pulse.core.models import CacheBackend


class ProviderConfig(BaseModel):
    """Access settings for one upstream market-data API."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: str | None = None
    timeout_seconds: float = 10.0
    rate_limit_per_minute: int = 60

    @field_validator("base_url")
    @classmethod
    def base_url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be > 0")
        return v

    @field_validator("rate_limit_per_minute")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit_per_minute must be >= 1")
        return v


class ProvidersConfig(BaseModel):
    """Aggregated provider configuration."""

    model_config = ConfigDict(frozen=True)

    # Public endpoints; weights allow roughly 1200 requests/minute.
    binance: ProviderConfig = ProviderConfig(
        base_url="https://api.binance.com",
        rate_limit_per_minute=1200,
    )
    # Free tier: 10-50 calls/minute depending on endpoint.
    coingecko: ProviderConfig = ProviderConfig(
        base_url="https://api.coingecko.com/api/v3",
        rate_limit_per_minute=30,
    )
    # Free tier: 60 calls/minute, token required.
    finnhub: ProviderConfig = ProviderConfig(
        base_url="https://finnhub.io/api/v1",
        rate_limit_per_minute=60,
    )


class CacheConfig(BaseModel):
    """Cache backend and TTL tiers (seconds)."""

    model_config = ConfigDict(frozen=True)

    backend: CacheBackend = CacheBackend.REDIS
    redis_url: str | None = "redis://localhost:6379/0"
    key_prefix: str = "pulse"
    quote_ttl: int = 60
    history_ttl: int = 300
    news_ttl: int = 900
    reference_ttl: int = 3600

    @field_validator("quote_ttl", "history_ttl", "news_ttl", "reference_ttl")
    @classmethod
    def ttl_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("cache TTLs must be >= 1 second")
        return v

    @model_validator(mode="after")
    def redis_url_required_for_redis(self) -> CacheConfig:
        if self.backend == CacheBackend.REDIS and not self.redis_url:
            raise ValueError("redis_url is required when backend is 'redis'")
        return self


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class PulseConfig(BaseModel):
    """Root configuration for the entire portfolio-pulse system."""

    model_config = ConfigDict(frozen=True)

    providers: ProvidersConfig = ProvidersConfig()
    cache: CacheConfig = CacheConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PORTFOLIO_PULSE_",
) -> PulseConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PORTFOLIO_PULSE_CACHE__REDIS_URL, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PORTFOLIO_PULSE_PROVIDERS__FINNHUB__API_KEY=abc
            ->  providers.finnhub.api_key = "abc"
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        _fill_provider_defaults(merged)
        return PulseConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("PORTFOLIO_PULSE_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from PORTFOLIO_PULSE_CONFIG not found: {env_path}",
                context={"field": "PORTFOLIO_PULSE_CONFIG", "value": env_path},
            )
        return p

    default = Path("portfolio-pulse.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        # API keys and URLs stay strings even when they look numeric
        if parts[-1] in ("api_key", "base_url", "redis_url"):
            cast_value = value
        target[parts[-1]] = cast_value

    return result


def _fill_provider_defaults(data: dict) -> None:
    """Merge partial provider sections over the built-in provider defaults.

    A YAML section such as ``providers: {finnhub: {api_key: x}}`` would
    otherwise fail validation for lacking ``base_url``.
    """
    providers = data.get("providers")
    if not isinstance(providers, dict):
        return
    defaults = ProvidersConfig()
    for name, section in providers.items():
        if not isinstance(section, dict) or name not in ProvidersConfig.model_fields:
            continue
        default_section = getattr(defaults, name).model_dump()
        providers[name] = {**default_section, **section}


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
