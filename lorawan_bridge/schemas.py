"""Integration event payloads as delivered by the application server."""
from __future__ import annotations

import base64
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

EventType = Literal["up", "join", "ack", "error", "status", "location"]
EVENT_TYPES: tuple[str, ...] = ("up", "join", "ack", "error", "status", "location")


def _normalize_eui(value: object) -> str:
    cleaned = str(value).strip().lower().replace(":", "").replace("-", "")
    if cleaned.startswith("0x"):
        cleaned = cleaned[2:]
    if len(cleaned) != 16 or any(c not in "0123456789abcdef" for c in cleaned):
        raise ValueError(f"EUI must be 8 bytes (16 hex characters), got {value!r}")
    return cleaned


class _EventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)


class Location(_EventModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    altitude: float = 0.0
    source: Optional[str] = None


class RxInfo(_EventModel):
    """Per-gateway reception report for one frame."""

    gateway_id: Optional[str] = Field(default=None, alias="gatewayID")
    name: Optional[str] = None
    time: Optional[datetime] = None
    rssi: int = 0
    lora_snr: float = Field(default=0.0, alias="loRaSNR")
    location: Optional[Location] = None


class TxInfo(_EventModel):
    frequency: int = 0
    dr: int = 0


class _DeviceEvent(_EventModel):
    application_id: Optional[str] = Field(default=None, alias="applicationID")
    application_name: str = Field(default="", alias="applicationName")
    device_name: str = Field(default="", alias="deviceName")
    dev_eui: str = Field(alias="devEUI", description="Device EUI as lowercase hex")
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("dev_eui", mode="before")
    @classmethod
    def _validate_dev_eui(cls, value: object) -> str:
        if isinstance(value, (bytes, bytearray)):
            if len(value) != 8:
                raise ValueError(f"EUI must be 8 bytes, got {len(value)}")
            return bytes(value).hex()
        return _normalize_eui(value)

    @field_validator("application_id", mode="before")
    @classmethod
    def _stringify_application_id(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class DataUpPayload(_DeviceEvent):
    rx_info: List[RxInfo] = Field(default_factory=list, alias="rxInfo")
    tx_info: TxInfo = Field(default_factory=TxInfo, alias="txInfo")
    adr: bool = False
    f_cnt: int = Field(default=0, alias="fCnt")
    f_port: int = Field(default=0, alias="fPort")
    data: Optional[bytes] = None
    object: Any = None

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, value: object) -> Optional[bytes]:
        if value is None or isinstance(value, (bytes, bytearray)):
            return value
        return base64.b64decode(str(value), validate=True)

    @field_serializer("data")
    def _serialize_data(self, value: Optional[bytes]) -> Optional[str]:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @field_serializer("object")
    def _serialize_object(self, value: Any) -> Any:
        to_dict = getattr(value, "to_dict", None)
        if callable(to_dict):
            return to_dict()
        return value


class JoinNotification(_DeviceEvent):
    dev_addr: str = Field(default="", alias="devAddr")
    rx_info: List[RxInfo] = Field(default_factory=list, alias="rxInfo")
    tx_info: TxInfo = Field(default_factory=TxInfo, alias="txInfo")


class ACKNotification(_DeviceEvent):
    rx_info: List[RxInfo] = Field(default_factory=list, alias="rxInfo")
    acknowledged: bool = False
    f_cnt: int = Field(default=0, alias="fCnt")


class ErrorNotification(_DeviceEvent):
    type: str = ""
    error: str = ""
    f_cnt: int = Field(default=0, alias="fCnt")


class StatusNotification(_DeviceEvent):
    margin: Optional[int] = None
    battery: Optional[int] = Field(default=None, description="Raw battery level (0-255)")
    battery_level: Optional[float] = Field(default=None, alias="batteryLevel")
    external_power_source: bool = Field(default=False, alias="externalPowerSource")
    battery_level_unavailable: bool = Field(default=False, alias="batteryLevelUnavailable")


class LocationNotification(_DeviceEvent):
    location: Location


EVENT_MODELS: Dict[str, type[_DeviceEvent]] = {
    "up": DataUpPayload,
    "join": JoinNotification,
    "ack": ACKNotification,
    "error": ErrorNotification,
    "status": StatusNotification,
    "location": LocationNotification,
}
