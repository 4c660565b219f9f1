"""
Day / month / year energy accumulators with calendar-key resets.

Each counter is paired with the calendar key (``YYYY-MM-DD``, ``YYYY-MM``,
``YYYY``) of the period it covers, computed in the unit's local timezone.
``check_resets`` zeroes a counter whenever the key for "now" differs from
the stored one; ``add`` never resets, so the reset stays a side effect of
the periodic check rather than of integration.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Store keys named after the counted capability

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any

logger = logging.getLogger(__name__)

PERIODS: tuple[str, ...] = ("day", "month", "year")

DEFAULT_CAPABILITY = "meter_power"

_RESET_KEYS: dict[str, str] = {
    "day": "lastDailyReset",
    "month": "lastMonthlyReset",
    "year": "lastYearlyReset",
}


def _store_keys(capability: str) -> dict[str, tuple[str, str]]:
    """Store names per period: (total key, reset key)."""
    prefix = "" if capability == DEFAULT_CAPABILITY else f"{capability}."
    return {period: (f"{capability}.{period}", f"{prefix}{reset}") for period, reset in _RESET_KEYS.items()}


def calendar_keys(now: datetime, tz: tzinfo) -> dict[str, str]:
    """Calendar keys for *now* in *tz*: ``{"day": ..., "month": ..., "year": ...}``."""
    local = now.astimezone(tz)
    day = local.strftime("%Y-%m-%d")
    return {"day": day, "month": day[:7], "year": day[:4]}


@dataclass
class EnergyAccumulators:
    """Energy totals (kWh) for the current day, month and year."""

    day_kwh: float = 0.0
    month_kwh: float = 0.0
    year_kwh: float = 0.0
    day_key: str | None = None
    month_key: str | None = None
    year_key: str | None = None

    def check_resets(self, now: datetime, tz: tzinfo) -> list[str]:
        """Zero every counter whose calendar key changed.

        Returns:
            The periods (``"day"``, ``"month"``, ``"year"``) that were reset.
        """
        reset: list[str] = []
        for period, key in calendar_keys(now, tz).items():
            if getattr(self, f"{period}_key") != key:
                setattr(self, f"{period}_kwh", 0.0)
                setattr(self, f"{period}_key", key)
                reset.append(period)
        if reset:
            logger.info("Energy accumulators reset: %s", ", ".join(reset))
        return reset

    def add(self, delta_kwh: float) -> None:
        """Add an energy increment to all three counters."""
        if delta_kwh <= 0:
            return
        self.day_kwh += delta_kwh
        self.month_kwh += delta_kwh
        self.year_kwh += delta_kwh

    def to_store(self, capability: str = DEFAULT_CAPABILITY) -> dict[str, Any]:
        """Flat key/value view for the store, totals named after *capability*."""
        values: dict[str, Any] = {}
        for period, (total_key, reset_key) in _store_keys(capability).items():
            values[total_key] = getattr(self, f"{period}_kwh")
            values[reset_key] = getattr(self, f"{period}_key")
        return values

    @classmethod
    def from_store(cls, values: dict[str, Any], capability: str = DEFAULT_CAPABILITY) -> EnergyAccumulators:
        """Rebuild accumulators from :meth:`to_store` output.

        Missing or non-numeric totals restore as 0; missing keys restore as
        ``None`` so the next reset check starts a fresh period.
        """

        def _kwh(name: str) -> float:
            value = values.get(name)
            if isinstance(value, int | float) and not isinstance(value, bool) and value >= 0:
                return float(value)
            return 0.0

        restored = cls()
        for period, (total_key, reset_key) in _store_keys(capability).items():
            setattr(restored, f"{period}_kwh", _kwh(total_key))
            setattr(restored, f"{period}_key", values.get(reset_key))
        return restored
