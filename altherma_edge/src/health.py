"""
Liveness file for the MQTT telemetry daemon.

A supervisor (container HEALTHCHECK, systemd watchdog script) reads this
JSON file to tell a healthy daemon from one whose broker session dropped
or whose bridge went quiet:
- last_message_ts: when the last attribute payload was accepted.
- mqtt_status: broker session state as reported by MqttFeed.
- message_count: attribute payloads accepted since the daemon started.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Keeps the liveness counters and mirrors them to *path* on each change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_message_ts: str | None = None
        self._mqtt_status: str = "disconnected"
        self._message_count: int = 0

    @property
    def mqtt_status(self) -> str:
        return self._mqtt_status

    @property
    def message_count(self) -> int:
        return self._message_count

    def record_message(self) -> None:
        """Count an accepted attribute payload and stamp its arrival time."""
        self._last_message_ts = datetime.now(tz=UTC).isoformat()
        self._message_count += 1
        self._write()

    def set_mqtt_status(self, status: str) -> None:
        """Store the latest broker session state.

        Args:
            status: ``connecting``, ``authenticated``, ``reconnecting``,
                ``disconnected``, ``connect_failed: <reason>`` or
                ``not_configured``.
        """
        self._mqtt_status = status
        self._write()

    def snapshot(self) -> dict[str, str | int | None]:
        return {
            "last_message_ts": self._last_message_ts,
            "mqtt_status": self._mqtt_status,
            "message_count": self._message_count,
        }

    def _write(self) -> None:
        self.path.write_text(json.dumps(self.snapshot()))
