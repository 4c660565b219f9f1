"""
Shared test fixtures for edge daemon tests.

Provides environment variable fixtures for EdgeSettings configuration tests.
All edge env vars are cleaned before each test to ensure isolation.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest

# All EdgeSettings environment variable names, used for cleanup.
_ALL_EDGE_ENV_VARS = (
    "MQTT_HOST",
    "MQTT_PORT",
    "MQTT_TLS",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_CLIENT_ID",
    "TOPIC_PREFIX",
    "VOLTAGE_TOPIC_L1",
    "VOLTAGE_TOPIC_L2",
    "VOLTAGE_TOPIC_L3",
    "EXTERNAL_VOLTAGE_ENABLED",
    "VOLTAGE_DEFAULT",
    "EFFICIENCY",
    "MIN_CURRENT_A",
    "BUH_STEP1_W",
    "BUH_STEP2_W",
    "THERMAL_ON_THRESHOLD_C",
    "THERMAL_OFF_THRESHOLD_C",
    "MIN_RUNNING_POWER_W",
    "TIMEZONE",
    "RESET_CHECK_INTERVAL_S",
    "WATCHDOG_INTERVAL_S",
    "FEED_STALE_S",
    "LOW_BATTERY_V",
    "STORE_PATH",
    "HEALTH_PATH",
    "NOTIFY_URL",
    "NOTIFY_TOKEN",
    "RAW_DEBUG_ENABLED",
    "RAW_DEBUG_EVERY_N_MESSAGES",
)


@pytest.fixture(autouse=True)
def _clean_edge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all edge env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_EDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set a representative set of environment variables for EdgeSettings.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "MQTT_HOST": "192.168.1.20",
        "MQTT_PORT": "8883",
        "MQTT_TLS": "true",
        "MQTT_USERNAME": "altherma",
        "MQTT_PASSWORD": "broker-secret",
        "TOPIC_PREFIX": "daikin",
        "EXTERNAL_VOLTAGE_ENABLED": "true",
        "VOLTAGE_DEFAULT": "235",
        "EFFICIENCY": "0.85",
        "BUH_STEP1_W": "2000",
        "BUH_STEP2_W": "4000",
        "TIMEZONE": "Europe/Brussels",
        "STORE_PATH": "/tmp/test-altherma.db",
        "NOTIFY_URL": "https://hooks.example.com/altherma",
        "NOTIFY_TOKEN": "notify-token",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
