"""
Per-unit session aggregator.

One ``UnitAggregator`` exists per monitored unit. It owns every piece of
mutable state for that unit (integrator baseline, thermal hysteresis flag,
energy accumulators, warning channels, last message timestamp) and mutates
it only from ``on_reading`` and its own timers, so no locking is needed on
the single asyncio loop.

Per reading:
1. Decide whether the unit is producing output (profile predicate).
2. Active: estimate compressor power, add backup heater steps, integrate
   energy, compute thermal output and COP.
3. Inactive: integrate 0 W to advance the baseline, leave the displayed
   power and COP untouched, and drop the thermal gate to invalid.
4. Run the calendar reset check, then add the increment to the counters.
   Units counting the bridge pulse meter add its increment to a second set
   of counters (``meter_power.bridge.*``).
5. Push capability values to the sink.
6. Bridge owner only: update the battery warning and clear the feed
   warning.

Any exception inside a pass is wrapped in :class:`UnitProcessingError`
naming the unit and stage, logged, and re-raised to the caller.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Bridge warnings owned by one unit; pulse meter counters

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import TYPE_CHECKING, Any, Protocol
from zoneinfo import ZoneInfo

from altherma_edge.src.accumulators import EnergyAccumulators
from altherma_edge.src.alerts import AlertSink, WarningChannel
from altherma_edge.src.exceptions import UnitProcessingError
from altherma_edge.src.integrator import EnergyIntegrator, EnergyStep, pulse_energy_kwh
from altherma_edge.src.power import PowerEstimate, estimate_power
from altherma_edge.src.thermal import DeltaTSmoother, ThermalCopCalculator, ThermalResult

if TYPE_CHECKING:
    from altherma_edge.src.config import EdgeSettings
    from altherma_edge.src.feed import ReadingHub
    from altherma_edge.src.models import NormalizedReading
    from altherma_edge.src.units import UnitProfile

logger = logging.getLogger(__name__)

BRIDGE_METER = "meter_power.bridge"
"""Capability prefix of the counters fed by the bridge kWh pulse meter."""


class CapabilitySink(Protocol):
    """Display/persistence sink for named per-unit values."""

    async def publish(self, unit: str, values: dict[str, Any]) -> None: ...

    async def load_store(self, unit: str) -> dict[str, Any]: ...

    async def save_store(self, unit: str, values: dict[str, Any]) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


# ---------------------------------------------------------------------------
# Configuration and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UnitConfig:
    """Estimation and scheduling inputs shared by all unit aggregators."""

    voltage_default: float = 230.0
    efficiency: float = 0.90
    min_current_a: float = 0.1
    buh_step1_w: float = 3000.0
    buh_step2_w: float = 6000.0
    thermal_on_threshold_c: float = 0.40
    thermal_off_threshold_c: float = 0.20
    min_running_power_w: float = 50.0
    tz: tzinfo = UTC
    low_battery_v: float = 5.0
    feed_stale_s: float = 180.0
    reset_check_interval_s: float = 1800.0
    watchdog_interval_s: float = 120.0

    @classmethod
    def from_settings(cls, settings: EdgeSettings) -> UnitConfig:
        return cls(
            voltage_default=settings.voltage_default,
            efficiency=settings.efficiency,
            min_current_a=settings.min_current_a,
            buh_step1_w=settings.buh_step1_w,
            buh_step2_w=settings.buh_step2_w,
            thermal_on_threshold_c=settings.thermal_on_threshold_c,
            thermal_off_threshold_c=settings.thermal_off_threshold_c,
            min_running_power_w=settings.min_running_power_w,
            tz=ZoneInfo(settings.timezone),
            low_battery_v=settings.low_battery_v,
            feed_stale_s=settings.feed_stale_s,
            reset_check_interval_s=settings.reset_check_interval_s,
            watchdog_interval_s=settings.watchdog_interval_s,
        )


@dataclass
class UnitUpdate:
    """Everything one processing pass derived for a unit.

    Attributes:
        values: Capability values to publish.
        active: Result of the unit's activity predicate.
        power: Compressor power estimate, when the unit meters energy.
        energy: Integrator step, when the unit meters energy.
        thermal: Thermal/COP result, when the unit was active.
        resets: Accumulator periods reset during this pass.
        pulse_kwh: Bridge pulse meter increment, when the unit counts it.
    """

    values: dict[str, Any]
    active: bool
    power: PowerEstimate | None = None
    energy: EnergyStep | None = None
    thermal: ThermalResult | None = None
    resets: list[str] = field(default_factory=list)
    pulse_kwh: float | None = None


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class UnitAggregator:
    """Derived metrics and warnings for one monitored unit.

    Args:
        profile: The unit's activity predicate and mirrored readings.
        config: Estimation and scheduling inputs.
        sink: Capability display/persistence sink.
        alerts: Where warning transitions go.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        profile: UnitProfile,
        config: UnitConfig,
        sink: CapabilitySink,
        alerts: AlertSink,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.profile = profile
        self.unit = profile.unit_type.value
        self.config = config
        self._sink = sink
        self._clock = clock

        self.integrator = EnergyIntegrator()
        self.thermal = ThermalCopCalculator(
            on_threshold_c=config.thermal_on_threshold_c,
            off_threshold_c=config.thermal_off_threshold_c,
            min_running_power_w=config.min_running_power_w,
        )
        self.accumulators = EnergyAccumulators()
        self.bridge_meter = EnergyAccumulators()
        self._delta_t = DeltaTSmoother()

        self.battery_warning = WarningChannel(self.unit, "battery", alerts)
        self.feed_warning = WarningChannel(self.unit, "feed", alerts)

        self.state = "uninitialized"
        self.started_at: datetime | None = None
        self.last_message_at: datetime | None = None
        self._stage = "idle"
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, hub: ReadingHub | None = None) -> None:
        """Restore accumulators, subscribe to *hub* and start the timers."""
        if self.profile.meters_energy:
            stored = await self._sink.load_store(self.unit)
            self.accumulators = EnergyAccumulators.from_store(stored)
            if self.profile.meters_pulses:
                self.bridge_meter = EnergyAccumulators.from_store(stored, BRIDGE_METER)
            await self.check_resets()

        if hub is not None:
            self._unsubscribe = hub.subscribe(self.on_reading)

        self._tasks = []
        if self.profile.watches_bridge:
            self._tasks.append(
                asyncio.create_task(
                    self._every(self.config.watchdog_interval_s, self.check_feed, "watchdog"),
                    name=f"{self.unit}-watchdog",
                )
            )
        if self.profile.meters_energy:
            self._tasks.append(
                asyncio.create_task(
                    self._every(self.config.reset_check_interval_s, self.check_resets, "reset"),
                    name=f"{self.unit}-reset",
                )
            )

        self.started_at = self._clock()
        self.state = "running"
        logger.info("Unit '%s' started", self.unit)

    async def teardown(self) -> None:
        """Detach from the feed and cancel the reset/watchdog timers."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self.state = "stopped"
        logger.info("Unit '%s' stopped", self.unit)

    async def _every(
        self,
        interval_s: float,
        job: Callable[[], Awaitable[Any]],
        name: str,
    ) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await job()
            except Exception:
                logger.error("Unit '%s' %s check failed", self.unit, name, exc_info=True)

    # ------------------------------------------------------------------
    # Reading pipeline
    # ------------------------------------------------------------------

    async def on_reading(self, reading: NormalizedReading) -> UnitUpdate:
        """Process one reading and push the results to the sinks.

        Raises:
            UnitProcessingError: Wrapping whatever failed, with the stage.
        """
        self._stage = "compute"
        try:
            update = self.process(reading)

            self._stage = "publish"
            await self._sink.publish(self.unit, update.values)
            if self.profile.meters_energy:
                await self._sink.save_store(self.unit, self._store_values())

            if self.profile.watches_bridge:
                self._stage = "bridge checks"
                await self.check_battery(reading.battery_voltage)
                await self.feed_warning.clear()
        except Exception as exc:
            error = UnitProcessingError(self.unit, self._stage, reading.received_at)
            logger.error("%s", error, exc_info=True)
            raise error from exc
        finally:
            self._stage = "idle"
        return update

    def process(self, reading: NormalizedReading) -> UnitUpdate:
        """Synchronous, deterministic part of a processing pass."""
        self.last_message_at = reading.received_at

        values = dict(self.profile.mirror(reading))
        active = self.profile.is_active(reading)
        values["heating_active"] = active

        if self.profile.shows_delta_t:
            delta_t = self._delta_t.add(reading.leaving_water_temp, reading.inlet_water_temp)
            if delta_t is not None:
                values["measure_temperature.deltaT"] = delta_t

        if not self.profile.meters_energy:
            return UnitUpdate(values=values, active=active)

        self._stage = "estimate power"
        cfg = self.config
        power = estimate_power(
            reading.inv_primary_current,
            reading.voltage_l1,
            reading.voltage_l2,
            reading.voltage_l3,
            efficiency=cfg.efficiency,
            min_current_a=cfg.min_current_a,
            voltage_default=cfg.voltage_default,
        )
        buh_w = self.backup_heater_power_w(reading)
        total_w = power.power_w + buh_w

        self._stage = "integrate energy"
        energy = self.integrator.update(total_w if active else 0.0, reading.received_at)

        self._stage = "thermal/cop"
        thermal: ThermalResult | None = None
        if active:
            thermal = self.thermal.compute(
                reading.flow_lpm,
                reading.leaving_water_temp_before_buh,
                reading.inlet_water_temp,
                power.power_w,
            )
            if not energy.first:
                values["measure_power"] = round(total_w)
                values["measure_power.naive"] = round(power.naive_power_w + buh_w)
            values["measure_cop"] = round(thermal.cop, 2)
            values["measure_power.thermal"] = round(thermal.thermal_power_kw * 1000)
        else:
            self.thermal.reset()

        self._stage = "accumulate"
        resets = self.accumulators.check_resets(reading.received_at, cfg.tz)
        self.accumulators.add(energy.delta_kwh)

        pulse_kwh: float | None = None
        if self.profile.meters_pulses:
            self._stage = "pulse meter"
            self.bridge_meter.check_resets(reading.received_at, cfg.tz)
            pulse_kwh = pulse_energy_kwh(reading.pulse_delta, reading.pulse_per_kwh)
            self.bridge_meter.add(pulse_kwh)
        values.update(self._meter_values())

        return UnitUpdate(
            values=values,
            active=active,
            power=power,
            energy=energy,
            thermal=thermal,
            resets=resets,
            pulse_kwh=pulse_kwh,
        )

    def backup_heater_power_w(self, reading: NormalizedReading) -> float:
        """Fixed configured wattage for each energized backup heater step."""
        watts = 0.0
        if reading.buh_step1_on:
            watts += self.config.buh_step1_w
        if reading.buh_step2_on:
            watts += self.config.buh_step2_w
        return watts

    def _meter_values(self) -> dict[str, float]:
        counters = [("meter_power", self.accumulators)]
        if self.profile.meters_pulses:
            counters.append((BRIDGE_METER, self.bridge_meter))
        values: dict[str, float] = {}
        for name, acc in counters:
            values[f"{name}.day"] = round(acc.day_kwh, 4)
            values[f"{name}.month"] = round(acc.month_kwh, 4)
            values[f"{name}.year"] = round(acc.year_kwh, 4)
        return values

    def _store_values(self) -> dict[str, Any]:
        values = self.accumulators.to_store()
        if self.profile.meters_pulses:
            values.update(self.bridge_meter.to_store(BRIDGE_METER))
        return values

    # ------------------------------------------------------------------
    # Periodic checks
    # ------------------------------------------------------------------

    async def check_resets(self, now: datetime | None = None) -> list[str]:
        """Zero counters whose calendar period ended and publish the result."""
        now = now or self._clock()
        resets = self.accumulators.check_resets(now, self.config.tz)
        bridge_resets = self.bridge_meter.check_resets(now, self.config.tz) if self.profile.meters_pulses else []
        if resets or bridge_resets:
            await self._sink.publish(self.unit, self._meter_values())
            await self._sink.save_store(self.unit, self._store_values())
        return resets

    async def check_feed(self, now: datetime | None = None) -> bool:
        """Raise or clear the feed silence warning.

        Only the bridge owner watches the feed; other units return False.

        Returns:
            True when the feed is considered stale.
        """
        if not self.profile.watches_bridge:
            return False
        now = now or self._clock()
        reference = self.last_message_at or self.started_at
        if reference is None:
            return False
        stale = (now - reference).total_seconds() > self.config.feed_stale_s
        if stale:
            minutes = round(self.config.feed_stale_s / 60)
            await self.feed_warning.warn(
                f"No data received from the heat pump bridge for more than {minutes} minutes"
            )
        else:
            await self.feed_warning.clear()
        return stale

    async def check_battery(self, battery_voltage: float | None) -> None:
        """Raise or clear the low bridge battery warning; unknown leaves it as is."""
        if not self.profile.watches_bridge or battery_voltage is None:
            return
        if battery_voltage < self.config.low_battery_v:
            await self.battery_warning.warn(
                f"Bridge battery voltage is below {self.config.low_battery_v:g} V"
            )
        else:
            await self.battery_warning.clear()
