"""Relay configuration.

Every setting resolves in this order, first match wins:

1. ``PAYMENTRELAY_*`` environment variables (sections nest with ``__``,
   e.g. ``PAYMENTRELAY_STRIPE__WEBHOOK_SECRET``)
2. the YAML file named by ``config_path`` / ``PAYMENTRELAY_CONFIG_PATH``
3. the defaults declared on the models below
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "PAYMENTRELAY_"


def _section_env(section: str = "") -> SettingsConfigDict:
    """Settings config reading ``PAYMENTRELAY_<SECTION>__*`` variables."""
    prefix = f"{ENV_PREFIX}{section.upper()}__" if section else ENV_PREFIX
    return SettingsConfigDict(env_prefix=prefix, env_nested_delimiter="__", case_sensitive=False)


class DatabaseEngine(enum.StrEnum):
    """Backends the transaction store can run on."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """Where the HTTP and WebSocket surface listens."""

    model_config = _section_env("server")

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 5000
    base_path: str = "/api/stripe"
    websocket_path: str = "/stripe/ws"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class StripeConfig(BaseSettings):
    """Credentials for the Stripe REST API and webhook signatures."""

    model_config = _section_env("stripe")

    api_key: str = ""
    webhook_secret: str = ""
    api_url: str = "https://api.stripe.com"
    success_url: str = ""
    cancel_url: str = ""
    signature_tolerance: int = Field(
        default=300,
        ge=0,
        description="Oldest accepted signature timestamp, in seconds",
    )
    timeout: float = 30.0


class WebhookNotificationConfig(BaseSettings):
    """Dispatch of verified events to in-process handlers."""

    model_config = _section_env("webhook_notifications")

    enabled: bool = True
    continue_on_error: bool = True
    timeout_seconds: float = Field(default=30.0, gt=0)
    publish_local_events: bool = True


class EventCacheConfig(BaseSettings):
    model_config = _section_env("event_cache")

    capacity: int = Field(default=100, ge=1)


class RealtimeConfig(BaseSettings):
    model_config = _section_env("realtime")

    send_timeout: float = Field(default=5.0, gt=0)


class MetricsConfig(BaseSettings):
    """Payment metric names and the sinks that receive them."""

    model_config = _section_env("metrics")

    enabled: bool = True
    prefix: str = "stripe.payment"
    log_metrics: bool = False
    include_detailed_tags: bool = False
    prometheus: bool = True
    logging_sink: bool = False


class DatabaseConfig(BaseSettings):
    """Transaction store; off unless ``enabled`` is set."""

    model_config = _section_env("db")

    enabled: bool = False
    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./payment_relay.db",
        description="SQLAlchemy URL using an async driver",
    )
    capture_extended_data: bool = False
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


# ---------------------------------------------------------------------------
# YAML file support
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Parse *path* as a YAML mapping; a missing file or non-mapping yields ``{}``."""
    source = Path(path)
    if not source.is_file():
        return {}
    with source.open(encoding="utf-8") as fh:
        parsed = yaml.safe_load(fh)
    if not isinstance(parsed, dict):
        return {}
    return parsed


def _fill_missing(target: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    """Copy *defaults* into *target* wherever *target* has no value of its own.

    Nested mappings are filled key by key, so an env var setting one field of a
    section keeps the file's values for the rest of it.
    """
    for key, fallback in defaults.items():
        current = target.get(key)
        if current is None:
            target[key] = fallback
        elif isinstance(current, dict) and isinstance(fallback, dict):
            target[key] = _fill_missing(dict(current), fallback)
    return target


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class AppConfig(BaseSettings):
    """Root of the relay configuration tree.

    Usage::

        config = AppConfig.from_yaml("relay.yaml")
        for warning in config.configuration_warnings():
            logger.warning(warning)
    """

    model_config = _section_env()

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    stripe: StripeConfig = Field(default_factory=StripeConfig)
    webhook_notifications: WebhookNotificationConfig = Field(
        default_factory=WebhookNotificationConfig
    )
    event_cache: EventCacheConfig = Field(default_factory=EventCacheConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @model_validator(mode="before")
    @classmethod
    def _apply_config_file(cls, values: Any) -> Any:
        if not isinstance(values, dict) or not values.get("config_path"):
            return values
        return _fill_missing(dict(values), _load_yaml(values["config_path"]))

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Build a config whose file layer comes from *path*."""
        return cls(config_path=str(path))

    def configuration_warnings(self) -> list[str]:
        """Describe missing settings that disable part of the relay.

        Startup proceeds regardless; locally generated payment events are
        still published when inbound webhooks cannot be verified.
        """
        warnings: list[str] = []
        if not self.stripe.webhook_secret:
            warnings.append("Stripe webhook secret is not set; inbound webhooks will be rejected")
        if not self.stripe.api_key:
            warnings.append("Stripe API key is not set; payment operations will fail")
        return warnings
