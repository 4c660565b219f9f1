"""
Edge daemon main loop for the ESPAltherma heat pump telemetry pipeline.

Wires the components together and runs until SIGTERM/SIGINT:

1. **MQTT feed**: receives bridge messages and hands them to the
   FeedDispatcher, which normalizes ATTR payloads and publishes readings
   to the ReadingHub.
2. **Unit aggregators**: one per monitored unit (heatpump, waterheater,
   boiler), subscribed to the hub. Each derives power, energy, thermal
   output and COP, keeps its day/month/year counters in the capability
   store and runs its own reset and watchdog timers.

A failure while handling one message is logged and does not affect the
next message or the other units. Graceful shutdown sets a shared
asyncio.Event; the feed disconnects and every aggregator is torn down.

Structured JSON logging is used for all events. A HealthWriter instance
tracks last_message_ts, mqtt_status and message_count.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from altherma_edge.src.aggregator import UnitAggregator, UnitConfig
from altherma_edge.src.feed import FeedDispatcher, ReadingHub
from altherma_edge.src.mqtt import NOT_CONFIGURED_MESSAGE, MqttFeed
from altherma_edge.src.units import PROFILES

if TYPE_CHECKING:
    from altherma_edge.src.aggregator import CapabilitySink
    from altherma_edge.src.config import EdgeSettings
    from altherma_edge.src.health import HealthWriter
    from altherma_edge.src.notifier import Notifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging for the edge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: EdgeSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    The MQTT password and webhook token are only logged as fingerprints.
    """
    logger.info(
        "Edge daemon starting with config: "
        "mqtt_host=%s, mqtt_port=%s, mqtt_tls=%s, mqtt_username=%s, "
        "topic_prefix=%s, external_voltage_enabled=%s, voltage_default=%s, "
        "efficiency=%s, buh_step1_w=%s, buh_step2_w=%s, timezone=%s, "
        "store_path=%s, notify_url=%s, raw_debug_enabled=%s, "
        "mqtt_password_masked=%s, notify_token_masked=%s",
        settings.mqtt_host or "<not configured>",
        settings.mqtt_port,
        settings.mqtt_tls,
        settings.mqtt_username,
        settings.topic_prefix,
        settings.external_voltage_enabled,
        settings.voltage_default,
        settings.efficiency,
        settings.buh_step1_w,
        settings.buh_step2_w,
        settings.timezone,
        settings.store_path,
        settings.notify_url,
        settings.raw_debug_enabled,
        _masked_token(settings.mqtt_password),
        _masked_token(settings.notify_token),
    )


# ---------------------------------------------------------------------------
# Single-message handling (easily testable)
# ---------------------------------------------------------------------------


async def _handle_message(
    *,
    dispatcher: FeedDispatcher,
    health: HealthWriter | None,
    topic: str,
    payload: str,
) -> None:
    """Dispatch one transport message and update the health file.

    Catches all exceptions so that the transport's receive loop is never
    broken by a bad message.
    """
    try:
        reading = await dispatcher.handle_message(topic, payload)
    except Exception:
        logger.error("Message handling error on topic %s", topic, exc_info=True)
        return

    if reading is not None and health is not None:
        try:
            health.record_message()
        except OSError:
            logger.error("Health file update failed", exc_info=True)


def build_aggregators(
    settings: EdgeSettings,
    sink: CapabilitySink,
    notifier: Notifier,
) -> list[UnitAggregator]:
    """Create one aggregator per monitored unit, in a stable order."""
    config = UnitConfig.from_settings(settings)
    return [UnitAggregator(profile, config, sink, notifier) for profile in PROFILES.values()]


# ---------------------------------------------------------------------------
# Runner with graceful shutdown
# ---------------------------------------------------------------------------


async def run_daemon(
    *,
    settings: EdgeSettings,
    sink: CapabilitySink,
    notifier: Notifier,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
) -> None:
    """Start every unit, run the MQTT feed until shutdown, then tear down."""
    hub = ReadingHub()
    dispatcher = FeedDispatcher(settings, hub)
    aggregators = build_aggregators(settings, sink, notifier)

    async def on_message(topic: str, payload: str) -> None:
        await _handle_message(dispatcher=dispatcher, health=health, topic=topic, payload=payload)

    feed = MqttFeed(settings, on_message, health=health)

    started: list[UnitAggregator] = []
    try:
        for aggregator in aggregators:
            await aggregator.start(hub)
            started.append(aggregator)

        if not feed.configured:
            await notifier.notify_once("mqtt_not_configured", NOT_CONFIGURED_MESSAGE)

        logger.info("Running %d unit aggregators", len(started))
        await feed.run(shutdown_event)
    finally:
        for aggregator in started:
            await aggregator.teardown()
        logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run the daemon.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    configure_logging()

    from altherma_edge.src.config import EdgeSettings
    from altherma_edge.src.health import HealthWriter
    from altherma_edge.src.notifier import Notifier
    from altherma_edge.src.store import CapabilityStore

    settings = EdgeSettings()
    if settings.raw_debug_enabled:
        logging.getLogger().setLevel(logging.DEBUG)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    notifier = Notifier(url=settings.notify_url, token=settings.notify_token)
    health = HealthWriter(settings.health_path)

    async with CapabilityStore(settings.store_path) as store:
        await run_daemon(
            settings=settings,
            sink=store,
            notifier=notifier,
            shutdown_event=shutdown_event,
            health=health,
        )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the edge daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
