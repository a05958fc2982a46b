"""RelayEngine — central engine owning every relay component."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from payment_relay.datastore.client import Datastore
from payment_relay.datastore.repository import (
    InMemoryTransactionRepository,
    SQLTransactionRepository,
)
from payment_relay.errors import ConfigurationError
from payment_relay.metrics.collector import RelayMetrics
from payment_relay.metrics.fanout import MetricsFanout
from payment_relay.metrics.listener import MetricsEventListener
from payment_relay.metrics.sinks import LoggingMetricsSink, PrometheusMetricsSink
from payment_relay.notifications.listeners import PaymentEventPublisher
from payment_relay.notifications.publisher import WebhookPublisher
from payment_relay.payments.service import PaymentService
from payment_relay.payments.stripe import StripeClient
from payment_relay.realtime.fanout import RealtimeNotifier
from payment_relay.realtime.registry import ConnectionRegistry
from payment_relay.realtime.session import ConnectionSession
from payment_relay.webhooks.cache import EventCache
from payment_relay.webhooks.processor import WebhookProcessor

if TYPE_CHECKING:
    from collections.abc import Iterable

    from payment_relay.config.settings import AppConfig
    from payment_relay.datastore.repository import TransactionRepository
    from payment_relay.metrics.sinks import MetricsSink
    from payment_relay.notifications.handlers import WebhookHandler
    from payment_relay.notifications.listeners import PaymentEventListener
    from payment_relay.notifications.publisher import WebhookCallback
    from payment_relay.payments.stripe import PaymentProvider

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class RelayEngine:
    """Central engine that owns the dispatch core and its infrastructure.

    In-process components (cache, registry, publishers, metrics) exist from
    construction so consumers can be registered before startup. Components
    that perform I/O (datastore, Stripe client) are created by
    :meth:`initialize` and released by :meth:`close`.

    Usage::

        engine = RelayEngine(config, handlers=[AuditHandler()])
        engine.publisher.subscribe(Hook.SUCCEEDED, send_receipt)
        await engine.initialize()
        ...
        await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        provider: PaymentProvider | None = None,
        callback: WebhookCallback | None = None,
        handlers: Iterable[WebhookHandler] = (),
        listeners: Iterable[PaymentEventListener] = (),
        sinks: Iterable[MetricsSink] = (),
        relay_metrics: RelayMetrics | None = None,
    ) -> None:
        """Initialize the engine with configuration.

        Args:
            config: Application configuration.
            provider: Payment provider; a ``StripeClient`` is created when omitted.
            callback: Single webhook callback for payment intent events.
            handlers: Webhook handler implementations.
            listeners: Payment lifecycle listeners.
            sinks: Extra metrics sinks.
            relay_metrics: Prometheus relay metrics (shares its registry with
                the Prometheus sink).
        """
        self._config = config
        self._initialized = False
        self._provider = provider
        self._owned_stripe: StripeClient | None = None

        self._relay_metrics = relay_metrics or RelayMetrics()

        # Dispatch core
        self._cache = EventCache(capacity=config.event_cache.capacity)
        self._registry = ConnectionRegistry()
        self._notifier = RealtimeNotifier(
            self._registry, send_timeout=config.realtime.send_timeout
        )
        self._publisher = WebhookPublisher(
            callback,
            handlers,
            continue_on_error=config.webhook_notifications.continue_on_error,
            timeout=config.webhook_notifications.timeout_seconds,
        )

        # Metrics fan-out
        metric_sinks: list[MetricsSink] = list(sinks)
        if config.metrics.prometheus:
            metric_sinks.append(PrometheusMetricsSink(self._relay_metrics.collector))
        if config.metrics.logging_sink:
            metric_sinks.append(LoggingMetricsSink())
        self._metrics = MetricsFanout(
            metric_sinks,
            enabled=config.metrics.enabled,
            prefix=config.metrics.prefix,
            log_metrics=config.metrics.log_metrics,
        )

        # Payment lifecycle events
        self._events = PaymentEventPublisher(listeners)
        if config.metrics.enabled:
            self._events.add_listener(
                MetricsEventListener(
                    self._metrics, include_detailed_tags=config.metrics.include_detailed_tags
                )
            )

        # Infrastructure (created in initialize)
        self._datastore: Datastore | None = None
        self._repository: TransactionRepository | None = None
        self._processor: WebhookProcessor | None = None
        self._payments: PaymentService | None = None

    async def initialize(self) -> None:
        """Open the datastore, connect the provider and wire services.

        Raises:
            RuntimeError: If already initialized.
            ConfigurationError: If persistence is enabled without a DSN.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        for warning in self._config.configuration_warnings():
            logger.warning("Configuration: %s", warning)

        # Persistence
        if self._config.db.enabled:
            if not self._config.db.dsn:
                msg = "Database persistence enabled without a DSN"
                raise ConfigurationError(msg)
            self._datastore = Datastore(self._config.db)
            await self._datastore.connect()
            self._repository = SQLTransactionRepository(self._datastore)
            logger.info("Transaction persistence: %s", self._config.db.engine)
        else:
            self._repository = InMemoryTransactionRepository()
            logger.info("Transaction persistence: in-memory")

        # Payment provider
        if self._provider is None:
            self._owned_stripe = StripeClient(self._config.stripe)
            await self._owned_stripe.connect()
            self._provider = self._owned_stripe

        notifications = self._config.webhook_notifications
        self._processor = WebhookProcessor(
            self._cache,
            self._publisher,
            self._notifier,
            secret=self._config.stripe.webhook_secret,
            tolerance=self._config.stripe.signature_tolerance,
            repository=self._repository,
            events=self._events,
            notifications_enabled=notifications.enabled,
            publish_local_events=notifications.publish_local_events,
            metrics=self._relay_metrics,
        )
        self._payments = PaymentService(
            self._provider,
            self._repository,
            self._events,
            self._processor,
            self._config.stripe,
            capture_extended_data=self._config.db.capture_extended_data,
            registry=self._registry,
        )

        self._initialized = True
        logger.info(
            "Relay engine initialized (notifications=%s, metrics=%s)",
            notifications.enabled,
            self._config.metrics.enabled,
        )

    async def close(self) -> None:
        """Gracefully shut down all services and connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        await self._metrics.drain()

        self._payments = None
        self._processor = None

        if self._owned_stripe is not None:
            await self._owned_stripe.close()
            self._provider = None
            self._owned_stripe = None

        self._repository = None
        if self._datastore is not None:
            await self._datastore.disconnect()
            self._datastore = None

        self._initialized = False

    def new_session(self) -> ConnectionSession:
        """Create a WebSocket session bound to the engine's registry."""
        return ConnectionSession(self._registry)

    def refresh_gauges(self) -> None:
        """Update connection and cache gauges (called before a scrape)."""
        self._relay_metrics.set_connection_count(len(self._registry))
        self._relay_metrics.set_cached_event_count(len(self._cache))

    # -- Properties --

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def cache(self) -> EventCache:
        """Get the recent event cache."""
        return self._cache

    @property
    def registry(self) -> ConnectionRegistry:
        """Get the WebSocket connection registry."""
        return self._registry

    @property
    def notifier(self) -> RealtimeNotifier:
        """Get the realtime fan-out."""
        return self._notifier

    @property
    def publisher(self) -> WebhookPublisher:
        """Get the webhook publisher (callback, hooks, handlers)."""
        return self._publisher

    @property
    def events(self) -> PaymentEventPublisher:
        """Get the payment lifecycle event publisher."""
        return self._events

    @property
    def metrics(self) -> MetricsFanout:
        """Get the payment metrics fan-out."""
        return self._metrics

    @property
    def relay_metrics(self) -> RelayMetrics:
        """Get the Prometheus relay metrics."""
        return self._relay_metrics

    @property
    def datastore(self) -> Datastore | None:
        """Get the datastore (``None`` when persistence is in-memory)."""
        return self._datastore

    @property
    def repository(self) -> TransactionRepository:
        """Get the transaction repository."""
        if self._repository is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._repository

    @property
    def processor(self) -> WebhookProcessor:
        """Get the inbound webhook processor."""
        if self._processor is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._processor

    @property
    def payments(self) -> PaymentService:
        """Get the payment service."""
        if self._payments is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._payments
