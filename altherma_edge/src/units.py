"""
Monitored unit profiles.

All units consume the same NormalizedReading stream and share one
estimation pipeline; a profile only decides *whether* a unit is producing
output, whether it meters energy, and which plain readings it mirrors to
the display sink.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Pulse meter and bridge warning ownership flags

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from altherma_edge.src.models import NormalizedReading, UnitType


def compressor_running(reading: NormalizedReading) -> bool:
    """Inverter primary current is present and positive."""
    current = reading.inv_primary_current
    return current is not None and current > 0


def heatpump_active(reading: NormalizedReading) -> bool:
    """Compressor running with the three-way valve on space heating."""
    return compressor_running(reading) and not reading.three_way_valve_dhw


def waterheater_active(reading: NormalizedReading) -> bool:
    """Compressor running with the three-way valve diverted to the DHW tank."""
    return compressor_running(reading) and reading.three_way_valve_dhw


def boiler_active(reading: NormalizedReading) -> bool:
    """DHW tank being loaded, by compressor or backup heater."""
    return reading.three_way_valve_dhw


def _mirror_heatpump(reading: NormalizedReading) -> dict[str, Any]:
    mode = reading.operation_mode
    return {
        "operation_mode": mode.value if mode is not None else None,
        "thermostat_on_off": reading.thermostat_on,
        "space_heating": reading.space_heating_on,
        "defrost": reading.defrost_operation,
        "measure_temperature.outdoor": reading.outdoor_air_temp,
        "measure_temperature.leavingWater": reading.leaving_water_temp,
        "measure_temperature.returningWater": reading.inlet_water_temp,
        "measure_temperature.lwSetPoint": reading.lw_setpoint_main,
        "measure_temperature.target": reading.rt_setpoint,
        "measure_temperature.room": reading.main_rt_heating,
        "measure_water": reading.flow_lpm,
        "measure_power.bridge": reading.measure_power,
        "measure_cop.bridge": reading.cop,
    }


def _mirror_dhw(reading: NormalizedReading) -> dict[str, Any]:
    return {
        "measure_temperature.dhwtank": reading.dhw_tank_temp,
        "measure_temperature.target_dhwtank": reading.dhw_setpoint,
        "powerful_dhwtank": reading.powerful_dhw_on,
    }


@dataclass(frozen=True, slots=True)
class UnitProfile:
    """What distinguishes one monitored unit from another.

    Attributes:
        unit_type: Which unit this profile describes.
        is_active: Whether the unit is producing output for a reading.
        mirror: Plain readings copied to the display sink as-is.
        meters_energy: Whether power, energy and COP are derived.
        shows_delta_t: Whether the smoothed leaving/inlet delta T is shown.
        meters_pulses: Whether the bridge kWh pulse meter is counted.
        watches_bridge: Whether this unit raises the bridge battery and feed
            warnings. Exactly one profile owns them.
    """

    unit_type: UnitType
    is_active: Callable[[NormalizedReading], bool]
    mirror: Callable[[NormalizedReading], dict[str, Any]]
    meters_energy: bool
    shows_delta_t: bool = False
    meters_pulses: bool = False
    watches_bridge: bool = False


PROFILES: dict[UnitType, UnitProfile] = {
    UnitType.HEATPUMP: UnitProfile(
        unit_type=UnitType.HEATPUMP,
        is_active=heatpump_active,
        mirror=_mirror_heatpump,
        meters_energy=True,
        shows_delta_t=True,
        meters_pulses=True,
        watches_bridge=True,
    ),
    UnitType.WATERHEATER: UnitProfile(
        unit_type=UnitType.WATERHEATER,
        is_active=waterheater_active,
        mirror=_mirror_dhw,
        meters_energy=True,
    ),
    UnitType.BOILER: UnitProfile(
        unit_type=UnitType.BOILER,
        is_active=boiler_active,
        mirror=_mirror_dhw,
        meters_energy=False,
    ),
}
