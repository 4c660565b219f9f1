"""
Warning notifier: log every warning transition and optionally POST it.

Implements the ``AlertSink`` protocol consumed by ``WarningChannel``. Every
raise/clear is logged. When a webhook URL is configured the transition is
also POSTed as JSON with Bearer token authentication and TLS certificate
verification always enabled.

Delivery is best effort: network errors and non-2xx responses are logged
and never propagate into the reading pipeline. The URL must use HTTPS and
is validated at construction time.

Operations:
- warn(unit, channel, message): Log and deliver a raised warning.
- clear(unit, channel): Log and deliver a cleared warning.
- notify_once(key, message): Deliver a process-wide notice at most once.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

NOTIFY_TIMEOUT_S: float = 10.0


class Notifier:
    """Delivers warning transitions to the log and an optional webhook.

    Args:
        url: Webhook URL. Must start with ``https://``. ``None`` disables
            delivery and leaves only logging.
        token: Bearer token sent with each webhook request.

    Raises:
        ValueError: If *url* is set and does not start with ``https://``.

    Usage::

        notifier = Notifier(url="https://hooks.example.com/altherma", token="tok")
        await notifier.warn("heatpump", "battery", "Bridge battery voltage is below 5 V")
    """

    def __init__(self, url: str | None = None, token: str | None = None) -> None:
        if url is not None and not url.lower().startswith("https://"):
            raise ValueError(f"Notify URL must use HTTPS (got: '{url}').")
        self._url = url
        self._token = token
        self._sent_once: set[str] = set()
        self.delivered: int = 0
        self.failed: int = 0

    @property
    def enabled(self) -> bool:
        """True when a webhook URL is configured."""
        return self._url is not None

    # ------------------------------------------------------------------
    # AlertSink
    # ------------------------------------------------------------------

    async def warn(self, unit: str, channel: str, message: str) -> None:
        logger.warning("[%s] %s warning: %s", unit, channel, message)
        await self._deliver(
            {"unit": unit, "channel": channel, "state": "raised", "message": message}
        )

    async def clear(self, unit: str, channel: str) -> None:
        logger.info("[%s] %s warning cleared", unit, channel)
        await self._deliver({"unit": unit, "channel": channel, "state": "cleared"})

    async def notify_once(self, key: str, message: str) -> bool:
        """Deliver *message* the first time *key* is seen in this process.

        Returns:
            True when the notice was sent, False when it had been sent before.
        """
        if key in self._sent_once:
            return False
        self._sent_once.add(key)
        logger.warning("%s", message)
        await self._deliver({"unit": None, "channel": key, "state": "notice", "message": message})
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _deliver(self, event: dict[str, Any]) -> bool:
        if self._url is None:
            return False

        event["ts"] = datetime.now(tz=UTC).isoformat()
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        try:
            async with httpx.AsyncClient(verify=True, timeout=NOTIFY_TIMEOUT_S) as client:
                response = await client.post(self._url, json=event, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Notification failed (network error): %s", exc)
            self.failed += 1
            return False

        if not 200 <= response.status_code < 300:
            logger.warning("Notification failed (HTTP %d)", response.status_code)
            self.failed += 1
            return False

        self.delivered += 1
        return True
