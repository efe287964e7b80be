"""Latitude/longitude folding for payload siblings."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pygeohash

from lorawan_bridge.lineprotocol.values import FieldValue, UnsupportedValueKind, is_numeric

GEOHASH_PRECISION = 12
LOCATION_KEY = "location"


def encode_geohash(latitude: float, longitude: float, precision: int = GEOHASH_PRECISION) -> str:
    return pygeohash.encode(latitude, longitude, precision=precision)


def location_fields(
    latitude: Any,
    longitude: Any,
    *,
    path: Optional[str] = None,
) -> Dict[str, FieldValue]:
    """Geohash plus float latitude/longitude fields.

    Raises :class:`UnsupportedValueKind` for coordinates that are not finite
    floats or fall outside the WGS84 ranges.
    """

    lat = FieldValue.float_(latitude, path=path)
    lon = FieldValue.float_(longitude, path=path)
    if not -90.0 <= lat.raw <= 90.0:
        raise UnsupportedValueKind(latitude, path=path, reason="latitude out of range")
    if not -180.0 <= lon.raw <= 180.0:
        raise UnsupportedValueKind(longitude, path=path, reason="longitude out of range")
    return {
        "geohash": FieldValue.string(encode_geohash(lat.raw, lon.raw)),
        "latitude": lat,
        "longitude": lon,
    }


def combine_location(
    children: List[Tuple[str, Any]],
    *,
    path: Optional[str] = None,
) -> Tuple[Optional[Dict[str, FieldValue]], List[Tuple[str, Any]]]:
    """Fold a numeric latitude/longitude sibling pair into location fields.

    Returns the combined fields (or ``None``) and the remaining children. Keys are
    matched case-insensitively; altitude and every other sibling pass through.
    """

    lat_idx = lon_idx = None
    for idx, (key, value) in enumerate(children):
        lowered = key.lower()
        if lowered == "latitude" and lat_idx is None:
            lat_idx = idx
        elif lowered == "longitude" and lon_idx is None:
            lon_idx = idx
    if lat_idx is None or lon_idx is None:
        return None, children
    latitude = children[lat_idx][1]
    longitude = children[lon_idx][1]
    if not (is_numeric(latitude) and is_numeric(longitude)):
        return None, children
    remaining = [child for idx, child in enumerate(children) if idx not in (lat_idx, lon_idx)]
    return location_fields(latitude, longitude, path=path), remaining
