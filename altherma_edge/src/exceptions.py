"""
Exceptions raised by the edge daemon.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime


class AlthermaEdgeError(Exception):
    """Base exception for the edge daemon."""


class UnitProcessingError(AlthermaEdgeError):
    """A unit aggregator failed while processing one reading.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, unit: str, stage: str, received_at: datetime | None = None) -> None:
        self.unit = unit
        self.stage = stage
        self.received_at = received_at
        when = f" (reading received {received_at.isoformat()})" if received_at else ""
        super().__init__(f"Unit '{unit}' failed during {stage}{when}")
