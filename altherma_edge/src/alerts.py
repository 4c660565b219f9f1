"""
Deduplicated warning channels.

A ``WarningChannel`` remembers the message it last raised. Raising the same
text again is suppressed until the channel is cleared or the text changes;
clearing an already clear channel is a no-op. Each aggregator owns its own
channels (battery, feed), so there is no process-wide "previous warning".

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import Protocol


class AlertSink(Protocol):
    """Receives warning transitions (implemented by the Notifier)."""

    async def warn(self, unit: str, channel: str, message: str) -> None: ...

    async def clear(self, unit: str, channel: str) -> None: ...


class WarningChannel:
    """One named, deduplicated warning slot for a unit.

    Args:
        unit: Owning unit name, forwarded to the sink.
        name: Channel name, e.g. ``"battery"`` or ``"feed"``.
        sink: Where warning transitions are delivered.
    """

    def __init__(self, unit: str, name: str, sink: AlertSink) -> None:
        self.unit = unit
        self.name = name
        self._sink = sink
        self._active: str | None = None

    @property
    def active(self) -> str | None:
        """The currently raised message, or ``None`` when clear."""
        return self._active

    async def warn(self, message: str) -> bool:
        """Raise *message*; returns False when it was already active."""
        if message == self._active:
            return False
        self._active = message
        await self._sink.warn(self.unit, self.name, message)
        return True

    async def clear(self) -> bool:
        """Clear the channel; returns False when nothing was active."""
        if self._active is None:
            return False
        self._active = None
        await self._sink.clear(self.unit, self.name)
        return True
