"""
Pure normalizer that converts a raw ESPAltherma attribute payload into a
NormalizedReading.

ESPAltherma publishes one JSON object per cycle whose keys are the
controller's display labels (units and punctuation embedded, e.g.
``"INV primary current (A)"``) and whose values are strings or numbers.
A single mapping table below ties each raw label to a reading field and the
parser that produces it, so the whole raw-to-typed contract can be audited
in one place.

The normalizer is total: it never raises on malformed input. Unknown enum
values, non-numeric strings, the ``"OFF"`` sentinel, NaN and missing keys
all map to ``None`` (or ``False`` for on/off flags).

This is a pure function: no side effects, no I/O, no clock. The ingestion
timestamp is accepted as a parameter so it can be injected by the caller.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from altherma_edge.src.models import IuOperationMode, NormalizedReading, OperationMode

logger = logging.getLogger(__name__)

OFF_SENTINEL = "OFF"
ON_SENTINEL = "ON"

# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def _parse_float(value: Any) -> float | None:
    """Parse a numeric value, returning ``None`` for anything not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or text.upper() == OFF_SENTINEL:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _parse_int(value: Any) -> int | None:
    """Parse an integral code such as ``" 42 "``; non-integral values are ``None``."""
    number = _parse_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _parse_on(value: Any) -> bool:
    """Exact ``"ON"`` match; ``"OFF"``, empty, lowercase and missing are False."""
    return value == ON_SENTINEL


def _parse_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _enum_key(value: Any) -> str | None:
    """Uppercase, trimmed, inner-whitespace-collapsed lookup key."""
    if not isinstance(value, str):
        return None
    return " ".join(value.split()).upper() or None


_OPERATION_MODES: dict[str, OperationMode] = {
    "FAN ONLY": OperationMode.FAN_ONLY,
    "HEATING": OperationMode.HEATING,
}

_IU_OPERATION_MODES: dict[str, IuOperationMode] = {
    "DHW": IuOperationMode.DHW,
    "HEATING": IuOperationMode.HEATING,
    "HEATING + DHW": IuOperationMode.HEATING_DHW,
    "HEATING+DHW": IuOperationMode.HEATING_DHW,
    "HEATINGDHW": IuOperationMode.HEATING_DHW,
}


def _parse_operation_mode(value: Any) -> OperationMode | None:
    key = _enum_key(value)
    return _OPERATION_MODES.get(key) if key else None


def _parse_iu_operation_mode(value: Any) -> IuOperationMode | None:
    key = _enum_key(value)
    return _IU_OPERATION_MODES.get(key) if key else None


# ---------------------------------------------------------------------------
# Mapping from raw ESPAltherma labels to NormalizedReading fields.
# ---------------------------------------------------------------------------

Parser = Callable[[Any], Any]

FIELD_MAP: dict[str, tuple[str, Parser]] = {
    # operation / status
    "Operation Mode": ("operation_mode", _parse_operation_mode),
    "I/U operation mode": ("iu_operation_mode", _parse_iu_operation_mode),
    "Thermostat ON/OFF": ("thermostat_on", _parse_on),
    "Space heating Operation ON/OFF": ("space_heating_on", _parse_on),
    "Powerful DHW Operation. ON/OFF": ("powerful_dhw_on", _parse_on),
    "Defrost Operation": ("defrost_operation", _parse_on),
    "3way valve(On:DHW_Off:Space)": ("three_way_valve_dhw", _parse_on),
    "BUH Step1": ("buh_step1_on", _parse_on),
    "BUH Step2": ("buh_step2_on", _parse_on),
    # temperatures (C)
    "R1T-Outdoor air temp.": ("outdoor_air_temp", _parse_float),
    "Leaving water temp. before BUH (R1T)": ("leaving_water_temp_before_buh", _parse_float),
    "Leaving water temp. after BUH (R2T)": ("leaving_water_temp", _parse_float),
    "Inlet water temp.(R4T)": ("inlet_water_temp", _parse_float),
    "DHW tank temp. (R5T)": ("dhw_tank_temp", _parse_float),
    "Main RT Heating": ("main_rt_heating", _parse_float),
    # setpoints (C)
    "DHW setpoint": ("dhw_setpoint", _parse_float),
    "LW setpoint (main)": ("lw_setpoint_main", _parse_float),
    "RT setpoint": ("rt_setpoint", _parse_float),
    # compressor
    "INV primary current (A)": ("inv_primary_current", _parse_float),
    "INV frequency (rps)": ("inv_frequency_rps", _parse_float),
    # flow
    "Flow sensor (l/min)": ("flow_lpm", _parse_float),
    # electrical, as reported by optional bridge add-ons
    "Power Usage": ("measure_power", _parse_float),
    "Pulse Delta": ("pulse_delta", _parse_float),
    "Pulses per kWh": ("pulse_per_kwh", _parse_float),
    "BE_COP": ("cop", _parse_float),
    # errors / diagnostics
    "Error type": ("error_type", _parse_text),
    "Error Code": ("error_code", _parse_int),
    "M5BatV": ("battery_voltage", _parse_float),
    "WifiRSSI": ("wifi_rssi", _parse_float),
    "FreeMem": ("free_mem", _parse_float),
}
"""Maps raw ESPAltherma label -> (NormalizedReading field, parser)."""

KNOWN_OPERATION_MODES = frozenset({"FAN ONLY", "HEATING"})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_payload(message: str | bytes) -> dict[str, Any] | None:
    """Decode an attribute message into a raw label/value dict.

    Returns:
        The decoded JSON object, or ``None`` when the message is not valid
        JSON or does not decode to an object.
    """
    try:
        raw = json.loads(message)
    except (ValueError, TypeError):
        logger.warning("Attribute payload is not valid JSON, skipping")
        return None
    if not isinstance(raw, dict):
        logger.warning("Attribute payload is not a JSON object, skipping")
        return None
    return raw


def normalize(raw: Mapping[str, Any], *, received_at: datetime) -> NormalizedReading:
    """Convert a raw ESPAltherma attribute payload into a NormalizedReading.

    This is a **pure function**: it performs no I/O, has no side effects,
    and does not access the system clock. Normalizing the same payload twice
    yields equal readings.

    Args:
        raw: Dict mapping ESPAltherma labels to raw string/number values.
        received_at: Ingestion timestamp to embed in the reading.

    Returns:
        A :class:`NormalizedReading`. Fields whose label is missing or whose
        value cannot be parsed are ``None`` (``False`` for on/off flags).
    """
    if not isinstance(raw, Mapping):
        raw = {}

    fields: dict[str, Any] = {}
    for label, (field_name, parser) in FIELD_MAP.items():
        fields[field_name] = parser(raw.get(label))

    return NormalizedReading(received_at=received_at, **fields)


def is_known_operation_mode(raw: Mapping[str, Any]) -> bool:
    """Whether the raw ``Operation Mode`` is one the normalizer recognizes."""
    return _enum_key(raw.get("Operation Mode")) in KNOWN_OPERATION_MODES


def enrich_voltages(
    reading: NormalizedReading,
    voltages: tuple[float, float, float],
) -> NormalizedReading:
    """Return a copy of *reading* carrying the current L1/L2/L3 voltages."""
    v1, v2, v3 = voltages
    return reading.model_copy(update={"voltage_l1": v1, "voltage_l2": v2, "voltage_l3": v3})
