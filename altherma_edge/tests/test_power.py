"""
Unit tests for the electrical power estimator.

Tests verify:
- Voltage chain constants (sqrt(3), 1.35 rectifier factor).
- Currents below the idle threshold estimate 0 W.
- Estimates are non-negative and grow with current.
- Invalid inputs (None, NaN, non-positive voltage/efficiency) give 0 W.
- Per-phase voltage fallback and the fixed-230 V naive twin.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math

import pytest
from altherma_edge.src.power import (
    SQRT3,
    effective_vln,
    estimate_power,
    estimate_power_w,
    estimate_vdc_from_vll,
    estimate_vll_from_vln,
)


class TestVoltageChain:
    """Line-to-line and DC bus voltage estimates."""

    def test_vll_from_230(self) -> None:
        assert estimate_vll_from_vln(230.0) == pytest.approx(398.37, abs=0.01)

    def test_vdc_from_vll(self) -> None:
        assert estimate_vdc_from_vll(400.0) == pytest.approx(540.0)

    @pytest.mark.parametrize("bad", [0.0, -230.0, math.nan])
    def test_invalid_voltage_gives_zero(self, bad: float) -> None:
        assert estimate_vll_from_vln(bad) == 0.0
        assert estimate_vdc_from_vll(bad) == 0.0


class TestEstimatePowerW:
    """Power from inverter primary current."""

    def test_reference_value(self) -> None:
        expected = 1.35 * SQRT3 * 230.0 * 4.0 / 0.9

        assert estimate_power_w(4.0, 230.0) == pytest.approx(expected)

    @pytest.mark.parametrize("current", [0.0, 0.05, 0.0999])
    def test_below_min_current_is_zero(self, current: float) -> None:
        assert estimate_power_w(current) == 0.0

    def test_min_current_itself_counts(self) -> None:
        assert estimate_power_w(0.1) > 0.0

    def test_monotonic_in_current(self) -> None:
        powers = [estimate_power_w(i / 2) for i in range(0, 30)]

        assert all(p >= 0 for p in powers)
        assert powers == sorted(powers)

    def test_monotonic_in_voltage(self) -> None:
        powers = [estimate_power_w(4.0, v) for v in (200.0, 215.0, 230.0, 245.0, 260.0)]

        assert powers == sorted(powers)
        assert powers[0] < powers[-1]

    @pytest.mark.parametrize(
        ("current", "vln", "efficiency"),
        [
            (None, 230.0, 0.9),
            (math.nan, 230.0, 0.9),
            (math.inf, 230.0, 0.9),
            (4.0, 0.0, 0.9),
            (4.0, math.nan, 0.9),
            (4.0, 230.0, 0.0),
            (4.0, 230.0, 1.5),
        ],
    )
    def test_invalid_inputs_give_zero(self, current: float | None, vln: float, efficiency: float) -> None:
        assert estimate_power_w(current, vln, efficiency=efficiency) == 0.0

    def test_custom_min_current(self) -> None:
        assert estimate_power_w(0.5, min_current_a=1.0) == 0.0
        assert estimate_power_w(1.0, min_current_a=1.0) > 0.0


class TestEffectiveVln:
    """Mean phase voltage with fallback."""

    def test_mean_of_three_phases(self) -> None:
        assert effective_vln(230.0, 232.0, 234.0) == pytest.approx(232.0)

    def test_missing_phases_use_default(self) -> None:
        assert effective_vln(240.0, None, None, default=230.0) == pytest.approx(233.3333, abs=1e-3)

    def test_invalid_phase_uses_default(self) -> None:
        assert effective_vln(math.nan, -1.0, 0.0, default=235.0) == pytest.approx(235.0)


class TestEstimatePower:
    """Voltage-corrected estimate next to the naive 230 V estimate."""

    def test_default_voltages_match_naive(self) -> None:
        estimate = estimate_power(4.0, 230.0, 230.0, 230.0)

        assert estimate.power_w == pytest.approx(estimate.naive_power_w)
        assert estimate.vln == 230.0

    def test_higher_voltage_raises_estimate(self) -> None:
        estimate = estimate_power(4.0, 240.0, 240.0, 240.0)

        assert estimate.power_w > estimate.naive_power_w
        assert estimate.power_w == pytest.approx(estimate_power_w(4.0, 240.0))

    def test_monotonic_in_each_phase(self) -> None:
        low = estimate_power(4.0, 230.0, 230.0, 230.0).power_w
        high = estimate_power(4.0, 230.0, 240.0, 230.0).power_w

        assert high > low

    def test_idle_compressor(self) -> None:
        estimate = estimate_power(0.0, 230.0, 230.0)

        assert estimate.power_w == 0.0
        assert estimate.naive_power_w == 0.0
