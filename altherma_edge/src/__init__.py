"""
Edge daemon package for the ESPAltherma-to-MQTT heat pump bridge.

Subscribes to ESPAltherma telemetry over MQTT, normalizes the attribute
payloads, and derives estimated electrical power, accumulated energy, thermal
output and COP per monitored unit (heat pump, water heater, boiler).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
