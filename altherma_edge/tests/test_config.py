"""
Unit tests for edge daemon configuration (EdgeSettings).

Tests verify:
- Config loads from environment variables with correct defaults.
- A missing MQTT host is allowed (daemon starts unconfigured).
- NOTIFY_URL is validated as HTTPS; empty disables the webhook.
- Numeric constraints are enforced (port, efficiency, voltage, intervals).
- Thermal thresholds must form a hysteresis band (OFF < ON).
- Derived topic names follow the topic prefix.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import pytest
from altherma_edge.src.config import EdgeSettings
from pydantic import ValidationError


class TestEdgeSettingsLoadsFromEnv:
    """Config loads all values from environment variables."""

    def test_loads_env_vars(self, env_vars_full: dict[str, str]) -> None:
        settings = EdgeSettings()

        assert settings.mqtt_host == env_vars_full["MQTT_HOST"]
        assert settings.mqtt_port == 8883
        assert settings.mqtt_tls is True
        assert settings.mqtt_username == "altherma"
        assert settings.mqtt_password == "broker-secret"
        assert settings.topic_prefix == "daikin"
        assert settings.external_voltage_enabled is True
        assert settings.voltage_default == 235.0
        assert settings.efficiency == 0.85
        assert settings.buh_step1_w == 2000.0
        assert settings.buh_step2_w == 4000.0
        assert settings.timezone == "Europe/Brussels"
        assert settings.store_path == "/tmp/test-altherma.db"
        assert settings.notify_url == "https://hooks.example.com/altherma"
        assert settings.notify_token == "notify-token"

    def test_defaults_applied_when_nothing_set(self) -> None:
        """Every setting has a default; an empty environment is valid."""
        settings = EdgeSettings()

        assert settings.mqtt_host == ""
        assert settings.mqtt_port == 1883
        assert settings.mqtt_tls is False
        assert settings.mqtt_username is None
        assert settings.mqtt_client_id == "altherma-edge"
        assert settings.topic_prefix == "espaltherma"
        assert settings.external_voltage_enabled is False
        assert settings.voltage_default == 230.0
        assert settings.efficiency == 0.90
        assert settings.min_current_a == 0.1
        assert settings.buh_step1_w == 3000.0
        assert settings.buh_step2_w == 6000.0
        assert settings.thermal_on_threshold_c == 0.40
        assert settings.thermal_off_threshold_c == 0.20
        assert settings.timezone == "UTC"
        assert settings.reset_check_interval_s == 1800
        assert settings.feed_stale_s == 180
        assert settings.low_battery_v == 5.0
        assert settings.notify_url is None
        assert settings.raw_debug_enabled is False
        assert settings.raw_debug_every_n_messages == 60


class TestTopics:
    """Derived topic names."""

    def test_attr_and_lwt_follow_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOPIC_PREFIX", "daikin")
        settings = EdgeSettings()

        assert settings.attr_topic == "daikin/ATTR"
        assert settings.lwt_topic == "daikin/LWT"

    def test_voltage_topics_in_phase_order(self) -> None:
        settings = EdgeSettings()

        assert settings.voltage_topics == (
            "espaltherma/grid/voltage1",
            "espaltherma/grid/voltage2",
            "espaltherma/grid/voltage3",
        )


class TestNotifyUrlValidation:
    """NOTIFY_URL must use HTTPS."""

    def test_http_url_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOTIFY_URL", "http://hooks.example.com")

        with pytest.raises(ValidationError, match="HTTPS"):
            EdgeSettings()

    def test_empty_url_disables_webhook(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOTIFY_URL", "")

        assert EdgeSettings().notify_url is None


class TestNumericConstraints:
    """Numeric settings are range checked."""

    @pytest.mark.parametrize("port", ["0", "65536"])
    def test_port_out_of_range_rejected(self, monkeypatch: pytest.MonkeyPatch, port: str) -> None:
        monkeypatch.setenv("MQTT_PORT", port)

        with pytest.raises(ValidationError):
            EdgeSettings()

    @pytest.mark.parametrize("efficiency", ["0", "-0.5", "1.2"])
    def test_efficiency_outside_unit_interval_rejected(
        self, monkeypatch: pytest.MonkeyPatch, efficiency: str
    ) -> None:
        monkeypatch.setenv("EFFICIENCY", efficiency)

        with pytest.raises(ValidationError):
            EdgeSettings()

    def test_efficiency_of_one_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EFFICIENCY", "1.0")

        assert EdgeSettings().efficiency == 1.0

    def test_non_positive_voltage_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VOLTAGE_DEFAULT", "0")

        with pytest.raises(ValidationError):
            EdgeSettings()

    def test_negative_backup_heater_wattage_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUH_STEP2_W", "-1")

        with pytest.raises(ValidationError):
            EdgeSettings()

    def test_zero_interval_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WATCHDOG_INTERVAL_S", "0")

        with pytest.raises(ValidationError):
            EdgeSettings()

    def test_unknown_timezone_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TIMEZONE", "Mars/Olympus_Mons")

        with pytest.raises(ValidationError, match="timezone"):
            EdgeSettings()


class TestThermalThresholds:
    """OFF threshold must be strictly below ON threshold."""

    def test_off_equal_to_on_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("THERMAL_ON_THRESHOLD_C", "0.3")
        monkeypatch.setenv("THERMAL_OFF_THRESHOLD_C", "0.3")

        with pytest.raises(ValidationError, match="THERMAL_OFF_THRESHOLD_C"):
            EdgeSettings()

    def test_custom_band_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("THERMAL_ON_THRESHOLD_C", "0.8")
        monkeypatch.setenv("THERMAL_OFF_THRESHOLD_C", "0.3")

        settings = EdgeSettings()

        assert settings.thermal_on_threshold_c == 0.8
        assert settings.thermal_off_threshold_c == 0.3
