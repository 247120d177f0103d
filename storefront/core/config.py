"""Environment-driven configuration objects for the engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from storefront.core.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_SHIPPING_COST,
    DEFAULT_TAX_RATE,
)
from storefront.core.exceptions import ConfigurationException


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"true", "1", "yes", "y"}


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise ConfigurationException(f"{name} must be a decimal number, got {raw!r}") from e
    if value < 0:
        raise ConfigurationException(f"{name} must not be negative")
    return value


@dataclass(slots=True)
class PricingConfig:
    shipping_cost: Decimal = DEFAULT_SHIPPING_COST
    tax_rate: Decimal = DEFAULT_TAX_RATE
    currency: str = DEFAULT_CURRENCY


@dataclass(slots=True)
class RemoteStoreConfig:
    base_url: str
    token: str | None = None
    timeout: float = DEFAULT_HTTP_TIMEOUT
    bulk_clear: bool = False


@dataclass(slots=True)
class Settings:
    remote: RemoteStoreConfig
    pricing: PricingConfig = field(default_factory=PricingConfig)
    environment: str = "production"
    sentry_dsn: str | None = None


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    base_url = os.getenv("STOREFRONT_API_URL")
    if not base_url:
        raise ConfigurationException("STOREFRONT_API_URL environment variable is not set")

    try:
        timeout = float(os.getenv("STOREFRONT_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT)))
    except ValueError as e:
        raise ConfigurationException("STOREFRONT_HTTP_TIMEOUT must be a number") from e

    remote = RemoteStoreConfig(
        base_url=base_url.rstrip("/"),
        token=os.getenv("STOREFRONT_API_TOKEN") or None,
        timeout=timeout,
        bulk_clear=_str_to_bool(os.getenv("STOREFRONT_CART_BULK_CLEAR", "false")),
    )

    pricing = PricingConfig(
        shipping_cost=_env_decimal("STOREFRONT_SHIPPING_COST", DEFAULT_SHIPPING_COST),
        tax_rate=_env_decimal("STOREFRONT_TAX_RATE", DEFAULT_TAX_RATE),
        currency=(os.getenv("STOREFRONT_CURRENCY") or DEFAULT_CURRENCY).upper(),
    )

    return Settings(
        remote=remote,
        pricing=pricing,
        environment=os.getenv("STOREFRONT_ENV", "production"),
        sentry_dsn=os.getenv("SENTRY_DSN") or None,
    )
