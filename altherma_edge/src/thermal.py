"""
Thermal output and COP with a hysteresis validity gate.

Thermal power is derived from water flow and the temperature rise across
the heat pump (leaving water *before* the backup heater minus inlet water):

    flow_m3h = flow_lpm * 0.06
    P_th_kW  = 1.16 * flow_m3h * delta_T
    COP      = P_th_kW * 1000 / P_el_W

Flow and temperature sensors are noisy near a zero differential, so the
result is gated by a two-threshold hysteresis: the output becomes valid once
delta T reaches the ON threshold and stays valid until it drops to the OFF
threshold.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass

WATER_HEAT_FACTOR: float = 1.16
"""kWh per m3 per kelvin for water (specific heat * density)."""

LPM_TO_M3H: float = 0.06

DEFAULT_ON_THRESHOLD_C: float = 0.40
DEFAULT_OFF_THRESHOLD_C: float = 0.20
DEFAULT_MIN_RUNNING_POWER_W: float = 50.0

DELTA_T_WINDOW: int = 5
"""Samples in the displayed delta T average (about 2.5 minutes at 30 s)."""


def thermal_power_kw(flow_lpm: float, delta_t: float) -> float:
    """Thermal power in kW for a water flow (l/min) and temperature rise (K)."""
    return WATER_HEAT_FACTOR * (flow_lpm * LPM_TO_M3H) * delta_t


@dataclass(frozen=True, slots=True)
class ThermalResult:
    """Output of one :meth:`ThermalCopCalculator.compute` call.

    Attributes:
        thermal_power_kw: Thermal output, 0 when not valid.
        cop: Coefficient of performance, 0 when not valid.
        delta_t: The temperature differential, or ``None`` when unknown.
        valid: Hysteresis state after this sample.
    """

    thermal_power_kw: float
    cop: float
    delta_t: float | None
    valid: bool


_INVALID = ThermalResult(thermal_power_kw=0.0, cop=0.0, delta_t=None, valid=False)


def _finite(value: float | None) -> bool:
    return isinstance(value, int | float) and math.isfinite(value)


class ThermalCopCalculator:
    """Per-unit thermal/COP calculator owning the hysteresis state.

    Args:
        on_threshold_c: Delta T at or above which an invalid state turns valid.
        off_threshold_c: Delta T at or below which a valid state turns invalid.
        min_running_power_w: Electrical power below which the unit is idle.

    Raises:
        ValueError: If *off_threshold_c* is not below *on_threshold_c*.
    """

    def __init__(
        self,
        *,
        on_threshold_c: float = DEFAULT_ON_THRESHOLD_C,
        off_threshold_c: float = DEFAULT_OFF_THRESHOLD_C,
        min_running_power_w: float = DEFAULT_MIN_RUNNING_POWER_W,
    ) -> None:
        if off_threshold_c >= on_threshold_c:
            raise ValueError("off_threshold_c must be lower than on_threshold_c")
        self._on_threshold_c = on_threshold_c
        self._off_threshold_c = off_threshold_c
        self._min_running_power_w = min_running_power_w
        self.is_valid: bool = False

    def reset(self) -> None:
        """Force the gate back to invalid."""
        self.is_valid = False

    def compute(
        self,
        flow_lpm: float | None,
        leaving_before_aux: float | None,
        inlet: float | None,
        electrical_power_w: float | None,
    ) -> ThermalResult:
        """Update the hysteresis state and compute thermal power and COP.

        Inputs that are missing or non-finite, a non-positive flow, or an
        electrical power below the running floor reset the gate to invalid
        and yield a zero result.
        """
        if not all(_finite(v) for v in (flow_lpm, leaving_before_aux, inlet, electrical_power_w)):
            self.reset()
            return _INVALID
        if flow_lpm <= 0 or electrical_power_w <= 0 or electrical_power_w < self._min_running_power_w:
            self.reset()
            return _INVALID

        delta_t = leaving_before_aux - inlet

        if not self.is_valid and delta_t >= self._on_threshold_c:
            self.is_valid = True
        elif self.is_valid and delta_t <= self._off_threshold_c:
            self.is_valid = False

        if not self.is_valid or delta_t <= 0:
            return ThermalResult(thermal_power_kw=0.0, cop=0.0, delta_t=delta_t, valid=self.is_valid)

        power_kw = thermal_power_kw(flow_lpm, delta_t)
        cop = power_kw * 1000 / electrical_power_w
        return ThermalResult(thermal_power_kw=power_kw, cop=cop, delta_t=delta_t, valid=True)


class DeltaTSmoother:
    """Rolling mean of the displayed leaving/inlet differential.

    Negative differentials are clamped to 0 and the mean is rounded to one
    decimal, matching what the display shows.
    """

    def __init__(self, window: int = DELTA_T_WINDOW) -> None:
        self._samples: deque[float] = deque(maxlen=window)

    def add(self, leaving: float | None, inlet: float | None) -> float | None:
        """Add a sample; returns the smoothed value or ``None`` when unknown."""
        if not _finite(leaving) or not _finite(inlet):
            return None
        self._samples.append(max(0.0, leaving - inlet))
        return round(sum(self._samples) / len(self._samples), 1)
