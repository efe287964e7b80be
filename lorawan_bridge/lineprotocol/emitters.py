"""Per-event point emitters.

Every emitter is a pure function of the event payload; the caller renders the
result with :func:`write_points`. Encoding errors surface before any text is
produced so a failing event never yields a partial body.
"""
from __future__ import annotations

from typing import Callable, Dict, List

from lorawan_bridge.lineprotocol.flatten import flatten
from lorawan_bridge.lineprotocol.geohash import location_fields
from lorawan_bridge.lineprotocol.points import Point, TagContext, write_points
from lorawan_bridge.lineprotocol.signal import best_signal
from lorawan_bridge.lineprotocol.values import FieldValue
from lorawan_bridge.schemas import (
    ACKNotification,
    DataUpPayload,
    ErrorNotification,
    JoinNotification,
    LocationNotification,
    StatusNotification,
)

UPLINK_DATA_PREFIX = "device_frmpayload_data"


def tag_context(pl) -> TagContext:
    return TagContext(
        application_name=pl.application_name,
        dev_eui=pl.dev_eui,
        device_name=pl.device_name,
        user_tags=dict(pl.tags),
    )


def uplink_points(pl: DataUpPayload) -> List[Point]:
    ctx = tag_context(pl)
    data_tags = ctx.build({"f_port": pl.f_port})
    points = [
        Point(leaf.name, data_tags, leaf.fields)
        for leaf in flatten(pl.object, prefix=(UPLINK_DATA_PREFIX,))
    ]

    fields: Dict[str, FieldValue] = {
        "f_cnt": FieldValue.integer(pl.f_cnt),
        "value": FieldValue.integer(1),
    }
    signal = best_signal(pl.rx_info)
    if signal is not None:
        fields["rssi"] = FieldValue.integer(signal.rssi)
        fields["snr"] = FieldValue.float_(signal.lora_snr, path="device_uplink.snr")
    uplink_tags = ctx.build({"dr": pl.tx_info.dr, "frequency": pl.tx_info.frequency})
    points.append(Point("device_uplink", uplink_tags, fields))
    return points


def status_points(pl: StatusNotification) -> List[Point]:
    tags = tag_context(pl).build()
    points: List[Point] = []
    if pl.battery is not None:
        points.append(Point("device_status_battery", tags, {"value": FieldValue.integer(pl.battery)}))
    if pl.battery_level is not None and not (pl.external_power_source or pl.battery_level_unavailable):
        points.append(
            Point(
                "device_status_battery_level",
                tags,
                {"value": FieldValue.float_(pl.battery_level, path="device_status_battery_level")},
            )
        )
    if pl.margin is not None:
        points.append(Point("device_status_margin", tags, {"value": FieldValue.integer(pl.margin)}))
    return points


def join_points(pl: JoinNotification) -> List[Point]:
    tags = tag_context(pl).build(
        {"dev_addr": pl.dev_addr.lower(), "dr": pl.tx_info.dr, "frequency": pl.tx_info.frequency}
    )
    return [Point("device_join", tags, {"value": FieldValue.integer(1)})]


def ack_points(pl: ACKNotification) -> List[Point]:
    fields = {
        "acknowledged": FieldValue.boolean(pl.acknowledged),
        "f_cnt": FieldValue.integer(pl.f_cnt),
    }
    return [Point("device_ack", tag_context(pl).build(), fields)]


def error_points(pl: ErrorNotification) -> List[Point]:
    fields = {
        "error": FieldValue.string(pl.error),
        "f_cnt": FieldValue.integer(pl.f_cnt),
    }
    return [Point("device_error", tag_context(pl).build({"type": pl.type}), fields)]


def location_points(pl: LocationNotification) -> List[Point]:
    loc = pl.location
    fields = location_fields(loc.latitude, loc.longitude, path="device_location")
    fields["altitude"] = FieldValue.float_(loc.altitude, path="device_location.altitude")
    return [Point("device_location", tag_context(pl).build({"source": loc.source}), fields)]


EMITTERS: Dict[str, Callable[..., List[Point]]] = {
    "up": uplink_points,
    "join": join_points,
    "ack": ack_points,
    "error": error_points,
    "status": status_points,
    "location": location_points,
}


def encode_event(event: str, pl) -> str:
    """Line-protocol body for one event; empty string when it yields no points."""

    return write_points(EMITTERS[event](pl))
