"""
Pydantic models for normalized ESPAltherma telemetry readings.

Defines the NormalizedReading model that represents a single attribute
message from the bridge after the raw label/value payload has been mapped
onto typed fields. Unknown or unparseable values are ``None`` (never 0 and
never NaN) so consumers can tell "no reading" apart from "zero".

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class OperationMode(StrEnum):
    """Outdoor unit operation mode."""

    FAN_ONLY = "fanonly"
    HEATING = "heating"


class IuOperationMode(StrEnum):
    """Indoor unit operation mode."""

    DHW = "dhw"
    HEATING = "heating"
    HEATING_DHW = "heatingdhw"


class UnitType(StrEnum):
    """Monitored units fed by the same attribute stream."""

    HEATPUMP = "heatpump"
    WATERHEATER = "waterheater"
    BOILER = "boiler"


class NormalizedReading(BaseModel):
    """A single normalized attribute message from the heat pump bridge.

    Temperatures are in degrees Celsius, currents in amperes, flow in l/min
    and power in watts. The voltage fields and ``received_at`` are added
    after normalization by the feed dispatcher.

    Attributes:
        operation_mode: Outdoor unit mode, ``None`` when unrecognized.
        iu_operation_mode: Indoor unit mode, ``None`` when unrecognized.
        thermostat_on: Room thermostat demand.
        space_heating_on: Space heating operation enabled.
        powerful_dhw_on: Powerful (boost) DHW operation enabled.
        defrost_operation: Outdoor unit is defrosting.
        three_way_valve_dhw: Three-way valve diverted to the DHW tank.
        buh_step1_on: Backup heater step 1 energized.
        buh_step2_on: Backup heater step 2 energized.
        outdoor_air_temp: R1T outdoor air temperature.
        leaving_water_temp_before_buh: Leaving water before the backup heater.
        leaving_water_temp: Leaving water after the backup heater (R2T).
        inlet_water_temp: Returning (inlet) water temperature (R4T).
        dhw_tank_temp: DHW tank temperature (R5T).
        inv_primary_current: Inverter primary current, the load proxy.
        inv_frequency_rps: Compressor inverter frequency.
        dhw_setpoint: DHW tank setpoint.
        lw_setpoint_main: Leaving water setpoint (main zone).
        rt_setpoint: Room thermostat setpoint.
        main_rt_heating: Main room temperature while heating.
        flow_lpm: Water flow rate.
        measure_power: Power reported by the bridge's own meter, if any.
        pulse_delta: kWh meter pulses since the previous message.
        pulse_per_kwh: kWh meter pulses per kWh.
        cop: COP reported by the bridge, if any.
        error_type: Controller error type text.
        error_code: Controller error code.
        battery_voltage: Bridge (M5) battery voltage.
        wifi_rssi: Bridge WiFi signal strength.
        free_mem: Bridge free heap memory.
        voltage_l1: Phase L1 line-to-neutral voltage.
        voltage_l2: Phase L2 line-to-neutral voltage.
        voltage_l3: Phase L3 line-to-neutral voltage.
        received_at: Ingestion timestamp (injected, not from the payload).
    """

    model_config = {"frozen": True}

    operation_mode: OperationMode | None = None
    iu_operation_mode: IuOperationMode | None = None

    thermostat_on: bool = False
    space_heating_on: bool = False
    powerful_dhw_on: bool = False
    defrost_operation: bool = False
    three_way_valve_dhw: bool = False
    buh_step1_on: bool = False
    buh_step2_on: bool = False

    outdoor_air_temp: float | None = None
    leaving_water_temp_before_buh: float | None = None
    leaving_water_temp: float | None = None
    inlet_water_temp: float | None = None
    dhw_tank_temp: float | None = None
    inv_primary_current: float | None = None
    inv_frequency_rps: float | None = None
    dhw_setpoint: float | None = None
    lw_setpoint_main: float | None = None
    rt_setpoint: float | None = None
    main_rt_heating: float | None = None
    flow_lpm: float | None = None
    measure_power: float | None = None
    pulse_delta: float | None = None
    pulse_per_kwh: float | None = None
    cop: float | None = None

    error_type: str | None = None
    error_code: int | None = None
    battery_voltage: float | None = None
    wifi_rssi: float | None = None
    free_mem: float | None = None

    voltage_l1: float = 230.0
    voltage_l2: float = 230.0
    voltage_l3: float = 230.0
    received_at: datetime
