"""
Edge daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded broker addresses or credentials.

A missing MQTT host is not a validation error: the daemon starts, raises a
one-time "not configured" warning and keeps the transport idle. Calibration
values (voltage, efficiency, backup heater wattages) always have defaults.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class EdgeSettings(BaseSettings):
    """Edge daemon configuration for the ESPAltherma MQTT bridge.

    Attributes:
        mqtt_host: MQTT broker hostname. Empty means "not configured yet".
        mqtt_port: MQTT broker port (default 1883).
        mqtt_tls: Connect with TLS (mqtts).
        mqtt_username: Broker username, if any.
        mqtt_password: Broker password, if any.
        mqtt_client_id: Client identifier presented to the broker.
        topic_prefix: ESPAltherma topic prefix; ``{prefix}/ATTR`` carries the
            attribute JSON and ``{prefix}/LWT`` the liveness sentinel.
        voltage_topic_l1: Topic carrying the external L1 voltage reading.
        voltage_topic_l2: Topic carrying the external L2 voltage reading.
        voltage_topic_l3: Topic carrying the external L3 voltage reading.
        external_voltage_enabled: When true, readings on the voltage topics
            override the default phase voltage.
        voltage_default: Line-to-neutral voltage assumed per phase (V).
        efficiency: Combined inverter + motor efficiency (0..1].
        min_current_a: Inverter primary current below which power is 0 W.
        buh_step1_w: Backup heater step 1 wattage.
        buh_step2_w: Backup heater step 2 wattage.
        thermal_on_threshold_c: Delta T at which thermal output becomes valid.
        thermal_off_threshold_c: Delta T at which thermal output becomes invalid.
        min_running_power_w: Electrical power floor for a "running" unit.
        timezone: IANA timezone for day/month/year energy resets.
        reset_check_interval_s: Seconds between periodic reset checks.
        watchdog_interval_s: Seconds between feed silence checks.
        feed_stale_s: Feed silence (seconds) that raises a warning.
        low_battery_v: Bridge battery voltage below which a warning is raised.
        store_path: SQLite file for capability and store values.
        health_path: Health JSON file path.
        notify_url: Optional HTTPS webhook receiving warnings.
        notify_token: Bearer token for the webhook.
        raw_debug_enabled: Log a raw ATTR snapshot every N messages.
        raw_debug_every_n_messages: Snapshot cadence when raw debug is on.
    """

    mqtt_host: str = ""
    mqtt_port: int = 1883
    mqtt_tls: bool = False
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_client_id: str = "altherma-edge"
    topic_prefix: str = "espaltherma"
    voltage_topic_l1: str = "espaltherma/grid/voltage1"
    voltage_topic_l2: str = "espaltherma/grid/voltage2"
    voltage_topic_l3: str = "espaltherma/grid/voltage3"
    external_voltage_enabled: bool = False

    voltage_default: float = 230.0
    efficiency: float = 0.90
    min_current_a: float = 0.1
    buh_step1_w: float = 3000.0
    buh_step2_w: float = 6000.0
    thermal_on_threshold_c: float = 0.40
    thermal_off_threshold_c: float = 0.20
    min_running_power_w: float = 50.0

    timezone: str = "UTC"
    reset_check_interval_s: int = 1800
    watchdog_interval_s: int = 120
    feed_stale_s: int = 180
    low_battery_v: float = 5.0

    store_path: str = "/data/altherma.db"
    health_path: str = "/data/health.json"
    notify_url: str | None = None
    notify_token: str | None = None

    raw_debug_enabled: bool = False
    raw_debug_every_n_messages: int = 60

    @property
    def attr_topic(self) -> str:
        """Topic carrying the ESPAltherma attribute JSON."""
        return f"{self.topic_prefix}/ATTR"

    @property
    def lwt_topic(self) -> str:
        """Topic carrying the bridge's last-will liveness sentinel."""
        return f"{self.topic_prefix}/LWT"

    @property
    def voltage_topics(self) -> tuple[str, str, str]:
        """The L1/L2/L3 external voltage topics, in phase order."""
        return (self.voltage_topic_l1, self.voltage_topic_l2, self.voltage_topic_l3)

    @field_validator("mqtt_port")
    @classmethod
    def mqtt_port_must_be_valid(cls, v: int) -> int:
        """Validate MQTT port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("MQTT_PORT must be between 1 and 65535")
        return v

    @field_validator("efficiency")
    @classmethod
    def efficiency_must_be_fraction(cls, v: float) -> float:
        """Validate efficiency is in (0, 1]."""
        if not 0 < v <= 1.0:
            raise ValueError("EFFICIENCY must be > 0 and <= 1")
        return v

    @field_validator("voltage_default")
    @classmethod
    def voltage_default_must_be_positive(cls, v: float) -> float:
        """Validate the fallback phase voltage is positive."""
        if v <= 0:
            raise ValueError("VOLTAGE_DEFAULT must be > 0")
        return v

    @field_validator("min_current_a", "buh_step1_w", "buh_step2_w", "min_running_power_w")
    @classmethod
    def must_be_non_negative(cls, v: float) -> float:
        """Validate calibration values are non-negative."""
        if v < 0:
            raise ValueError("calibration values must be >= 0")
        return v

    @field_validator("timezone")
    @classmethod
    def timezone_must_resolve(cls, v: str) -> str:
        """Validate the timezone name resolves via zoneinfo."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"TIMEZONE '{v}' is not a known IANA timezone") from exc
        return v

    @field_validator(
        "reset_check_interval_s",
        "watchdog_interval_s",
        "feed_stale_s",
        "raw_debug_every_n_messages",
    )
    @classmethod
    def intervals_must_be_positive(cls, v: int) -> int:
        """Validate timer intervals are at least one second."""
        if v < 1:
            raise ValueError("intervals must be >= 1")
        return v

    @field_validator("notify_url")
    @classmethod
    def notify_url_must_be_https(cls, v: str | None) -> str | None:
        """Validate that the notification webhook uses HTTPS.

        Warnings can carry installation details, so plain HTTP is rejected
        at startup. An empty value disables the webhook.
        """
        if not v:
            return None
        if not v.lower().startswith("https://"):
            raise ValueError(f"NOTIFY_URL must use HTTPS (got: '{v[:20]}...').")
        return v

    @model_validator(mode="after")
    def _thresholds_must_form_hysteresis(self) -> "EdgeSettings":
        """Require OFF < ON so the thermal gate cannot chatter."""
        if self.thermal_off_threshold_c >= self.thermal_on_threshold_c:
            raise ValueError(
                "THERMAL_OFF_THRESHOLD_C must be lower than THERMAL_ON_THRESHOLD_C"
            )
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
