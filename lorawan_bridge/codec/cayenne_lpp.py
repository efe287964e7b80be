"""Cayenne Low Power Payload decoding.

Frames are a sequence of ``<channel:u8><type:u8><data>`` records; the IPSO
type code determines the width and scaling of ``data``. Decoded frames keep
one ``{channel: value}`` group per sensor type and enumerate themselves for
the line-protocol flattener (``gps_location`` -> ``10`` -> ``latitude``...).
"""
from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Tuple


class CayenneDecodeError(ValueError):
    pass


LPP_DIGITAL_INPUT = 0
LPP_DIGITAL_OUTPUT = 1
LPP_ANALOG_INPUT = 2
LPP_ANALOG_OUTPUT = 3
LPP_ILLUMINANCE_SENSOR = 101
LPP_PRESENCE_SENSOR = 102
LPP_TEMPERATURE_SENSOR = 103
LPP_HUMIDITY_SENSOR = 104
LPP_ACCELEROMETER = 113
LPP_BAROMETER = 115
LPP_GYROMETER = 134
LPP_GPS_LOCATION = 136


@dataclass
class Accelerometer:
    x: float
    y: float
    z: float

    def iter_children(self) -> Iterator[Tuple[str, Any]]:
        yield "x", self.x
        yield "y", self.y
        yield "z", self.z

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass
class Gyrometer(Accelerometer):
    pass


@dataclass
class GPSLocation:
    latitude: float
    longitude: float
    altitude: float

    def iter_children(self) -> Iterator[Tuple[str, Any]]:
        yield "latitude", self.latitude
        yield "longitude", self.longitude
        yield "altitude", self.altitude

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude, "altitude": self.altitude}


def _int24(data: bytes) -> int:
    return int.from_bytes(data, "big", signed=True)


def _xyz(cls, scale: float) -> Callable[[bytes], Any]:
    def decode(data: bytes) -> Any:
        x, y, z = struct.unpack(">hhh", data)
        return cls(x / scale, y / scale, z / scale)

    return decode


def _gps(data: bytes) -> GPSLocation:
    return GPSLocation(
        latitude=_int24(data[0:3]) / 10000.0,
        longitude=_int24(data[3:6]) / 10000.0,
        altitude=_int24(data[6:9]) / 100.0,
    )


# type code -> (group attribute, data length, decoder)
_DECODERS: Dict[int, Tuple[str, int, Callable[[bytes], Any]]] = {
    LPP_DIGITAL_INPUT: ("digital_input", 1, lambda b: b[0]),
    LPP_DIGITAL_OUTPUT: ("digital_output", 1, lambda b: b[0]),
    LPP_ANALOG_INPUT: ("analog_input", 2, lambda b: struct.unpack(">h", b)[0] / 100.0),
    LPP_ANALOG_OUTPUT: ("analog_output", 2, lambda b: struct.unpack(">h", b)[0] / 100.0),
    LPP_ILLUMINANCE_SENSOR: ("illuminance_sensor", 2, lambda b: struct.unpack(">H", b)[0]),
    LPP_PRESENCE_SENSOR: ("presence_sensor", 1, lambda b: b[0]),
    LPP_TEMPERATURE_SENSOR: ("temperature_sensor", 2, lambda b: struct.unpack(">h", b)[0] / 10.0),
    LPP_HUMIDITY_SENSOR: ("humidity_sensor", 1, lambda b: b[0] / 2.0),
    LPP_ACCELEROMETER: ("accelerometer", 6, _xyz(Accelerometer, 1000.0)),
    LPP_BAROMETER: ("barometer", 2, lambda b: struct.unpack(">H", b)[0] / 10.0),
    LPP_GYROMETER: ("gyrometer", 6, _xyz(Gyrometer, 100.0)),
    LPP_GPS_LOCATION: ("gps_location", 9, _gps),
}

_JSON_KEYS = {
    "digital_input": "digitalInput",
    "digital_output": "digitalOutput",
    "analog_input": "analogInput",
    "analog_output": "analogOutput",
    "illuminance_sensor": "illuminanceSensor",
    "presence_sensor": "presenceSensor",
    "temperature_sensor": "temperatureSensor",
    "humidity_sensor": "humiditySensor",
    "accelerometer": "accelerometer",
    "barometer": "barometer",
    "gyrometer": "gyrometer",
    "gps_location": "gpsLocation",
}


@dataclass
class CayenneLPP:
    digital_input: Dict[int, int] = field(default_factory=dict)
    digital_output: Dict[int, int] = field(default_factory=dict)
    analog_input: Dict[int, float] = field(default_factory=dict)
    analog_output: Dict[int, float] = field(default_factory=dict)
    illuminance_sensor: Dict[int, int] = field(default_factory=dict)
    presence_sensor: Dict[int, int] = field(default_factory=dict)
    temperature_sensor: Dict[int, float] = field(default_factory=dict)
    humidity_sensor: Dict[int, float] = field(default_factory=dict)
    accelerometer: Dict[int, Accelerometer] = field(default_factory=dict)
    barometer: Dict[int, float] = field(default_factory=dict)
    gyrometer: Dict[int, Gyrometer] = field(default_factory=dict)
    gps_location: Dict[int, GPSLocation] = field(default_factory=dict)

    @classmethod
    def decode(cls, data: bytes) -> "CayenneLPP":
        out = cls()
        offset = 0
        while offset < len(data):
            if offset + 2 > len(data):
                raise CayenneDecodeError(f"truncated record header at offset {offset}")
            channel = data[offset]
            type_code = data[offset + 1]
            offset += 2
            entry = _DECODERS.get(type_code)
            if entry is None:
                raise CayenneDecodeError(f"invalid data type: {type_code}")
            attr, length, decoder = entry
            chunk = data[offset : offset + length]
            if len(chunk) != length:
                raise CayenneDecodeError(
                    f"expected {length} bytes for type {type_code} on channel {channel}, got {len(chunk)}"
                )
            getattr(out, attr)[channel] = decoder(chunk)
            offset += length
        return out

    def iter_children(self) -> Iterator[Tuple[str, Any]]:
        for attr in _JSON_KEYS:
            group = getattr(self, attr)
            if group:
                yield attr, group

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, json_key in _JSON_KEYS.items():
            group = getattr(self, attr)
            if not group:
                continue
            out[json_key] = {
                str(channel): value.to_dict() if hasattr(value, "to_dict") else value
                for channel, value in group.items()
            }
        return out
