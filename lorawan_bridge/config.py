"""Runtime configuration for the event bridge."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_TIMEOUT_SECONDS = 0.1
MAX_TIMEOUT_SECONDS = 300.0


def _clamp_timeout_seconds(value: float, *, field: str) -> float:
    try:
        parsed = float(value)
    except Exception as exc:
        raise ValueError(f"{field} must be a number") from exc
    if parsed != parsed:  # NaN
        raise ValueError(f"{field} must be a real number")
    return max(MIN_TIMEOUT_SECONDS, min(parsed, MAX_TIMEOUT_SECONDS))


class InfluxDBConfig(BaseModel):
    """InfluxDB (1.x write API) sink."""

    enabled: bool = Field(default=False, description="Write events as line protocol to InfluxDB")
    endpoint: str = Field(default="http://127.0.0.1:8086/write", description="Write endpoint URL")
    db: str = Field(default="lorawan", description="Database name")
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    retention_policy_name: str = Field(default="", description="Retention policy (rp query parameter)")
    precision: Literal["ns", "u", "ms", "s", "m", "h"] = Field(default="ns", description="Timestamp precision")
    timeout_seconds: float = Field(default=10.0, description="HTTP request timeout")

    @field_validator("timeout_seconds")
    @classmethod
    def _clamp_timeout(cls, value: float) -> float:
        return _clamp_timeout_seconds(value, field="timeout_seconds")


class MQTTPublisherConfig(BaseModel):
    """JSON event publisher on an MQTT v5 broker."""

    enabled: bool = Field(default=False, description="Publish events as JSON to MQTT")
    url: str = Field(default="mqtt://127.0.0.1:1883", description="MQTT broker URL")
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    topic: str = Field(default="lorawan/events", description="Topic every event is published to")
    qos: int = Field(default=0, ge=0, le=2)

    @property
    def host(self) -> str:
        return _parsed_url(self.url).hostname or "127.0.0.1"

    @property
    def port(self) -> int:
        return _parsed_url(self.url).port or 1883


class Settings(BaseSettings):
    """Environment driven settings."""

    service_name: str = "lorawan-bridge"
    service_version: str = "0.1.0"
    log_level: str = "INFO"
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://127.0.0.1:4317"
    otel_exporter_otlp_headers: Optional[str] = None
    otel_sample_ratio: float = 1.0
    payload_codec: Literal["none", "cayenne_lpp"] = Field(
        default="none",
        description="Decode the raw FRMPayload when an uplink carries no decoded object",
    )
    influxdb: InfluxDBConfig = Field(default_factory=InfluxDBConfig)
    mqtt: MQTTPublisherConfig = Field(default_factory=MQTTPublisherConfig)

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    @property
    def enabled_sinks(self) -> list[str]:
        sinks = []
        if self.influxdb.enabled:
            sinks.append("influxdb")
        if self.mqtt.enabled:
            sinks.append("mqtt")
        return sinks


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


@lru_cache(maxsize=32)
def _parsed_url(url: str):
    return urlparse(url)
