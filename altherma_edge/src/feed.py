"""
Feed dispatch: MQTT messages in, NormalizedReadings out to every unit.

``FeedDispatcher.handle_message(topic, payload)`` is the single inbound
callback for the transport. It routes:

- external voltage topics (when enabled): values within 207-253 V replace
  the per-phase voltage used to enrich later readings;
- the LWT topic: anything other than ``Online`` is logged;
- the ATTR topic: JSON is decoded, normalized, enriched with the current
  phase voltages and the ingestion timestamp, and published to the
  ``ReadingHub``.

``ReadingHub`` is an explicit publish/subscribe fan-out. ``subscribe``
returns an unsubscribe handle, and a failing listener never prevents
delivery to the others.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import contextlib
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from altherma_edge.src.exceptions import UnitProcessingError
from altherma_edge.src.normalizer import (
    enrich_voltages,
    is_known_operation_mode,
    normalize,
    parse_payload,
)

if TYPE_CHECKING:
    from altherma_edge.src.config import EdgeSettings
    from altherma_edge.src.models import NormalizedReading

logger = logging.getLogger(__name__)

VOLTAGE_MIN_V: float = 207.0
VOLTAGE_MAX_V: float = 253.0
"""Accepted external voltage window (230 V +/- 10%)."""

LWT_ONLINE = "Online"

Listener = Callable[["NormalizedReading"], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class ReadingHub:
    """Delivers each NormalizedReading to every subscribed listener in order."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a handle that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    async def publish(self, reading: NormalizedReading) -> int:
        """Deliver *reading* to all listeners.

        Returns:
            The number of listeners that raised. Failures are logged and do
            not stop delivery to the remaining listeners.
        """
        failures = 0
        for listener in list(self._listeners):
            try:
                await listener(reading)
            except UnitProcessingError as exc:
                # Already logged with traceback by the aggregator.
                failures += 1
                logger.warning("Reading delivery failed: %s", exc)
            except Exception:
                failures += 1
                logger.error("Reading listener raised", exc_info=True)
        return failures


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def parse_voltage(payload: str) -> float | None:
    """Parse an external voltage reading; ``None`` when outside 207-253 V."""
    try:
        value = float(payload.strip())
    except (AttributeError, ValueError):
        return None
    if not math.isfinite(value) or not VOLTAGE_MIN_V <= value <= VOLTAGE_MAX_V:
        return None
    return value


class FeedDispatcher:
    """Routes raw transport messages and publishes normalized readings.

    Args:
        settings: Topic names, voltage defaults and raw debug options.
        hub: Fan-out for normalized readings.
        clock: Returns the ingestion timestamp; injectable for tests.
    """

    def __init__(
        self,
        settings: EdgeSettings,
        hub: ReadingHub,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._hub = hub
        self._clock = clock
        self._voltages: list[float] = [settings.voltage_default] * 3
        self.message_count: int = 0
        self.last_lwt: str | None = None

    @property
    def voltages(self) -> tuple[float, float, float]:
        """Current L1/L2/L3 voltages used for enrichment."""
        v1, v2, v3 = self._voltages
        return (v1, v2, v3)

    async def handle_message(self, topic: str, payload: str) -> NormalizedReading | None:
        """Handle one transport message.

        Returns:
            The published reading for ATTR messages, otherwise ``None``.
        """
        settings = self._settings

        if settings.external_voltage_enabled and topic in settings.voltage_topics:
            self._update_voltage(settings.voltage_topics.index(topic), payload)
            return None

        if topic == settings.lwt_topic:
            self.last_lwt = payload
            if payload != LWT_ONLINE:
                logger.warning("Bridge LWT: %s", payload)
            return None

        if topic != settings.attr_topic:
            return None

        raw = parse_payload(payload)
        if raw is None:
            return None

        self.message_count += 1
        if settings.raw_debug_enabled and self.message_count % settings.raw_debug_every_n_messages == 0:
            logger.warning("Raw attribute snapshot: %s", raw)

        if not is_known_operation_mode(raw):
            logger.info("Operation Mode: %s", raw.get("Operation Mode"))

        reading = enrich_voltages(normalize(raw, received_at=self._clock()), self.voltages)
        await self._hub.publish(reading)
        return reading

    def _update_voltage(self, phase: int, payload: str) -> None:
        value = parse_voltage(payload)
        if value is None:
            logger.debug("Ignoring out-of-range voltage on L%d: %r", phase + 1, payload)
            return
        self._voltages[phase] = value
