"""
Electrical power estimate from the inverter primary current.

The Altherma outdoor unit does not report its electrical input, only the
compressor inverter's primary current. Assuming a three-phase supply feeding
a diode rectifier and DC bus:

- V_LL ~= sqrt(3) * V_LN
- V_DC ~= 1.35 * V_LL
- P_DC  = V_DC * I
- P_AC  = P_DC / efficiency (combined inverter + motor efficiency)

All functions are pure and total: invalid input yields 0 W, never a negative
value and never NaN.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
from dataclasses import dataclass

SQRT3: float = math.sqrt(3)
RECTIFIER_FACTOR: float = 1.35
"""Ratio of DC bus voltage to line-to-line voltage for a 6-pulse rectifier."""

DEFAULT_VLN: float = 230.0
DEFAULT_EFFICIENCY: float = 0.90
DEFAULT_MIN_CURRENT_A: float = 0.1


def _finite(value: float | None) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


def estimate_vll_from_vln(vln: float = DEFAULT_VLN) -> float:
    """Estimate line-to-line voltage from line-to-neutral voltage."""
    if not _finite(vln) or vln <= 0:
        return 0.0
    return vln * SQRT3


def estimate_vdc_from_vll(vll: float) -> float:
    """Estimate the DC bus voltage of a three-phase diode rectifier."""
    if not _finite(vll) or vll <= 0:
        return 0.0
    return RECTIFIER_FACTOR * vll


def estimate_power_w(
    current_a: float | None,
    vln: float | None = DEFAULT_VLN,
    *,
    efficiency: float = DEFAULT_EFFICIENCY,
    min_current_a: float = DEFAULT_MIN_CURRENT_A,
) -> float:
    """Estimate electrical input power (W) from the inverter primary current.

    Args:
        current_a: Inverter primary current in amperes.
        vln: Line-to-neutral supply voltage in volts.
        efficiency: Combined inverter + motor efficiency, in (0, 1].
        min_current_a: Below this current the compressor is considered idle.

    Returns:
        Estimated power in watts, ``>= 0``. Returns 0 when the current is
        below *min_current_a*, or when any input is non-finite or out of
        range.
    """
    if not _finite(current_a) or current_a < min_current_a:
        return 0.0
    if not _finite(vln) or vln <= 0:
        return 0.0
    if not _finite(efficiency) or efficiency <= 0 or efficiency > 1.0:
        return 0.0

    vdc = estimate_vdc_from_vll(estimate_vll_from_vln(vln))
    pdc = vdc * current_a
    return max(0.0, pdc / efficiency)


def effective_vln(
    v_l1: float | None,
    v_l2: float | None,
    v_l3: float | None = None,
    *,
    default: float = DEFAULT_VLN,
) -> float:
    """Mean line-to-neutral voltage, substituting *default* for unknown phases."""
    phases = [v if _finite(v) and v > 0 else default for v in (v_l1, v_l2, v_l3)]
    return sum(phases) / len(phases)


@dataclass(frozen=True, slots=True)
class PowerEstimate:
    """Voltage-corrected compressor power next to its fixed-230 V twin.

    Attributes:
        power_w: Estimate using the supplied (or fallback) phase voltages.
        naive_power_w: Estimate assuming a fixed 230 V, for comparison.
        vln: The line-to-neutral voltage used for ``power_w``.
    """

    power_w: float
    naive_power_w: float
    vln: float


def estimate_power(
    current_a: float | None,
    v_l1: float | None,
    v_l2: float | None,
    v_l3: float | None = None,
    *,
    efficiency: float = DEFAULT_EFFICIENCY,
    min_current_a: float = DEFAULT_MIN_CURRENT_A,
    voltage_default: float = DEFAULT_VLN,
) -> PowerEstimate:
    """Estimate compressor power with per-phase voltage fallback.

    Missing, non-finite or non-positive phase voltages are replaced by
    *voltage_default* before averaging, so a bridge without external
    voltage readings degrades to the 230 V model.
    """
    vln = effective_vln(v_l1, v_l2, v_l3, default=voltage_default)
    return PowerEstimate(
        power_w=estimate_power_w(
            current_a, vln, efficiency=efficiency, min_current_a=min_current_a
        ),
        naive_power_w=estimate_power_w(
            current_a, DEFAULT_VLN, efficiency=efficiency, min_current_a=min_current_a
        ),
        vln=vln,
    )
