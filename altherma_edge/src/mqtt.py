"""
MQTT transport for the ESPAltherma bridge.

Connects to the configured broker with aiomqtt, subscribes to
``{prefix}/#`` (plus any external voltage topic outside the prefix) and
hands every message to the dispatcher as ``(topic, payload_str)``.
Designed to be robust:

- Exponential backoff on connection failures (capped at MAX_BACKOFF_S),
  reset after a session was established.
- An exception raised by the message callback is logged and never breaks
  the receive loop.
- Connection status is recorded in the health file.
- An empty broker host leaves the transport idle with status
  ``not_configured`` until shutdown.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from aiomqtt import Client, MqttError, TLSParameters

if TYPE_CHECKING:
    from altherma_edge.src.config import EdgeSettings
    from altherma_edge.src.health import HealthWriter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_BACKOFF_S: float = 1.0
"""Initial reconnect delay in seconds after the first failure."""

MAX_BACKOFF_S: float = 60.0
"""Maximum reconnect delay in seconds (cap for exponential growth)."""

KEEPALIVE_S: int = 30

NOT_CONFIGURED_MESSAGE = "MQTT information not configured yet, please set MQTT_HOST"

MessageCallback = Callable[[str, str], Awaitable[Any]]


def _decode_payload(payload: Any) -> str:
    if isinstance(payload, (bytes, bytearray)):
        return payload.decode("utf-8", errors="replace")
    if payload is None:
        return ""
    return str(payload)


class MqttFeed:
    """Long-running MQTT subscriber feeding the dispatcher.

    Args:
        settings: Broker address, credentials and topic names.
        on_message: Awaited with ``(topic, payload)`` for every message.
        health: HealthWriter receiving status changes, or None.
    """

    def __init__(
        self,
        settings: EdgeSettings,
        on_message: MessageCallback,
        *,
        health: HealthWriter | None = None,
    ) -> None:
        self._settings = settings
        self._on_message = on_message
        self._health = health
        self._backoff = BASE_BACKOFF_S
        self.status: str = "disconnected"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def configured(self) -> bool:
        return bool(self._settings.mqtt_host)

    @property
    def current_backoff(self) -> float:
        """Current reconnect delay in seconds."""
        return self._backoff

    def subscriptions(self) -> list[str]:
        """Topic filters to subscribe to, in order."""
        prefix = self._settings.topic_prefix
        topics = [f"{prefix}/#"]
        if self._settings.external_voltage_enabled:
            for topic in self._settings.voltage_topics:
                if not topic.startswith(f"{prefix}/") and topic not in topics:
                    topics.append(topic)
        return topics

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Receive messages until *shutdown_event* is set, reconnecting as needed."""
        if not self.configured:
            logger.warning(NOT_CONFIGURED_MESSAGE)
            self._set_status("not_configured")
            await shutdown_event.wait()
            return

        while not shutdown_event.is_set():
            connected = False
            try:
                self._set_status("connecting")
                async with self._client() as client:
                    connected = True
                    self._set_status("authenticated")
                    self._backoff = BASE_BACKOFF_S
                    for topic in self.subscriptions():
                        await client.subscribe(topic)
                    await self._receive_until_shutdown(client, shutdown_event)
            except MqttError as exc:
                if connected:
                    logger.warning("MQTT connection lost: %s", exc)
                    self._set_status("reconnecting")
                else:
                    logger.warning(
                        "MQTT connect to %s:%s failed: %s",
                        self._settings.mqtt_host,
                        self._settings.mqtt_port,
                        exc,
                    )
                    self._set_status(f"connect_failed: {exc}")
                await self._sleep_backoff(shutdown_event)
                continue

            if not shutdown_event.is_set():
                self._set_status("reconnecting")

        self._set_status("disconnected")
        logger.info("MQTT feed stopped")

    async def handle(self, topic: str, payload: Any) -> None:
        """Deliver one message to the callback; callback errors are logged."""
        try:
            await self._on_message(topic, _decode_payload(payload))
        except Exception:
            logger.error("Message handler failed for topic %s", topic, exc_info=True)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _client(self) -> Client:
        settings = self._settings
        return Client(
            settings.mqtt_host,
            port=settings.mqtt_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            identifier=settings.mqtt_client_id,
            keepalive=KEEPALIVE_S,
            tls_params=TLSParameters() if settings.mqtt_tls else None,
        )

    async def _receive_until_shutdown(self, client: Client, shutdown_event: asyncio.Event) -> None:
        receive = asyncio.create_task(self._receive(client))
        stop = asyncio.create_task(shutdown_event.wait())
        done, pending = await asyncio.wait({receive, stop}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if receive in done:
            # Propagates MqttError so the caller reconnects.
            receive.result()

    async def _receive(self, client: Client) -> None:
        async for message in client.messages:
            await self.handle(message.topic.value, message.payload)

    async def _sleep_backoff(self, shutdown_event: asyncio.Event) -> None:
        delay = self._backoff
        self._backoff = min(self._backoff * 2, MAX_BACKOFF_S)
        logger.info("Reconnecting to MQTT broker in %.1fs", delay)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)

    def _set_status(self, status: str) -> None:
        if status == self.status:
            return
        self.status = status
        logger.info("MQTT status: %s", status)
        if self._health is not None:
            self._health.set_mqtt_status(status)
