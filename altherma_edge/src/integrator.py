"""
Trapezoidal energy integration over irregularly timed power samples.

``integrate_kwh`` is the pure step; ``EnergyIntegrator`` owns the previous
sample for one monitored unit. The first sample only establishes a baseline
so no "since process start" energy is invented, and a non-positive time
delta (clock skew, out-of-order delivery) yields no energy while still
moving the baseline forward so the next delta is not inflated.

``pulse_energy_kwh`` converts the bridge's own kWh pulse counter, which
needs no integration.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Bridge pulse meter conversion

TODO:
- None
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

SECONDS_PER_HOUR: float = 3600.0


def integrate_kwh(prev_power_w: float, curr_power_w: float, dt_seconds: float) -> float:
    """Energy in kWh between two power samples using the trapezoid rule.

    E_kWh = ((P0 + P1) / 2) * (dt / 3600) / 1000

    Returns:
        The energy increment, ``>= 0``. Returns 0 when either power is
        non-finite or negative, or when *dt_seconds* is not positive.
    """
    for value in (prev_power_w, curr_power_w, dt_seconds):
        if not isinstance(value, int | float) or not math.isfinite(value):
            return 0.0
    if prev_power_w < 0 or curr_power_w < 0 or dt_seconds <= 0:
        return 0.0
    return ((prev_power_w + curr_power_w) / 2) * (dt_seconds / SECONDS_PER_HOUR) / 1000


@dataclass(frozen=True, slots=True)
class EnergyStep:
    """Result of feeding one power sample to an :class:`EnergyIntegrator`.

    Attributes:
        delta_kwh: Energy since the previous sample.
        first: True when this sample only established the baseline.
        dt_seconds: Seconds since the previous sample (0 on the first call).
    """

    delta_kwh: float
    first: bool
    dt_seconds: float = 0.0


class EnergyIntegrator:
    """Stateful trapezoidal integrator for one unit's power series."""

    def __init__(self) -> None:
        self.previous_ts: datetime | None = None
        self.previous_power_w: float = 0.0

    def update(self, power_w: float, ts: datetime) -> EnergyStep:
        """Integrate from the stored baseline to (*ts*, *power_w*).

        The baseline always advances to the new sample, including when the
        delta is rejected.
        """
        if self.previous_ts is None:
            self.previous_ts = ts
            self.previous_power_w = power_w
            return EnergyStep(delta_kwh=0.0, first=True)

        dt_seconds = (ts - self.previous_ts).total_seconds()
        delta_kwh = integrate_kwh(self.previous_power_w, power_w, dt_seconds)

        self.previous_ts = ts
        self.previous_power_w = power_w
        return EnergyStep(delta_kwh=delta_kwh, first=False, dt_seconds=dt_seconds)


def pulse_energy_kwh(pulse_delta: float | None, pulses_per_kwh: float | None) -> float:
    """Energy counted by the bridge kWh meter since its previous message.

    Returns:
        ``pulse_delta / pulses_per_kwh``. Returns 0 when either value is
        missing or non-finite, when *pulses_per_kwh* is not positive, or
        when *pulse_delta* is negative.
    """
    if pulse_delta is None or pulses_per_kwh is None:
        return 0.0
    if not math.isfinite(pulse_delta) or not math.isfinite(pulses_per_kwh):
        return 0.0
    if pulses_per_kwh <= 0 or pulse_delta < 0:
        return 0.0
    return pulse_delta / pulses_per_kwh
