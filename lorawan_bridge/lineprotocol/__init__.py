"""Line-protocol encoding of device events."""
from __future__ import annotations

from .emitters import (
    EMITTERS,
    ack_points,
    encode_event,
    error_points,
    join_points,
    location_points,
    status_points,
    uplink_points,
)
from .flatten import EnumerableObject, Leaf, MappingObject, flatten
from .geohash import combine_location, encode_geohash
from .points import Point, TagContext, write_points
from .signal import best_signal
from .values import FieldValue, UnsupportedValueKind, ValueKind, encode_value, to_field_value

__all__ = [
    "EMITTERS",
    "EnumerableObject",
    "FieldValue",
    "Leaf",
    "MappingObject",
    "Point",
    "TagContext",
    "UnsupportedValueKind",
    "ValueKind",
    "ack_points",
    "best_signal",
    "combine_location",
    "encode_event",
    "encode_geohash",
    "encode_value",
    "error_points",
    "flatten",
    "join_points",
    "location_points",
    "status_points",
    "to_field_value",
    "uplink_points",
    "write_points",
]
