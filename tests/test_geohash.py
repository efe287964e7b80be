from __future__ import annotations

import pytest

from lorawan_bridge.lineprotocol.geohash import combine_location, encode_geohash
from lorawan_bridge.lineprotocol.values import UnsupportedValueKind, ValueKind, encode_value


def test_encode_geohash_known_points():
    assert encode_geohash(1.123, 2.123) == "s01w2k3vvqre"
    assert encode_geohash(57.64911, 10.40744, precision=11) == "u4pruydqqvj"
    assert len(encode_geohash(-89.9, -179.9)) == 12


def test_combine_location_folds_pair_and_keeps_altitude():
    children = [("latitude", 1.123), ("altitude", 3.123), ("longitude", 2.123)]
    fields, remaining = combine_location(children)
    assert remaining == [("altitude", 3.123)]
    assert fields is not None
    assert encode_value(fields["geohash"]) == '"s01w2k3vvqre"'
    assert encode_value(fields["latitude"]) == "1.123000"
    assert encode_value(fields["longitude"]) == "2.123000"


def test_combine_location_renders_integer_coordinates_as_floats():
    fields, _ = combine_location([("latitude", 1), ("longitude", 2)])
    assert fields["latitude"].kind is ValueKind.FLOAT
    assert encode_value(fields["longitude"]) == "2.000000"


def test_combine_location_is_case_insensitive():
    fields, remaining = combine_location([("Latitude", 1.0), ("LONGITUDE", 2.0)])
    assert fields is not None
    assert remaining == []


@pytest.mark.parametrize(
    "children",
    [
        [("latitude", 1.0)],
        [("longitude", 2.0), ("status", "on")],
        [("latitude", "1.0"), ("longitude", 2.0)],
        [("latitude", None), ("longitude", 2.0)],
        [("latitude", True), ("longitude", 2.0)],
    ],
)
def test_combine_location_requires_numeric_pair(children):
    fields, remaining = combine_location(children)
    assert fields is None
    assert remaining == children


@pytest.mark.parametrize(
    "latitude, longitude",
    [
        (float("nan"), 2.0),
        (1.0, float("inf")),
        (10**400, 1.0),
        (91.0, 2.0),
        (1.0, -180.5),
    ],
)
def test_combine_location_rejects_unusable_coordinates(latitude, longitude):
    with pytest.raises(UnsupportedValueKind, match="data_location"):
        combine_location([("latitude", latitude), ("longitude", longitude)], path="data_location")
