from __future__ import annotations

import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import DEV_EUI
from lorawan_bridge.config import InfluxDBConfig, Settings, get_settings
from lorawan_bridge.services.influxdb import InfluxDBIntegration
from lorawan_bridge.services.integrations import MultiIntegration


@pytest.fixture(scope="module")
def api() -> TestClient:
    from lorawan_bridge.main import app

    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def influx(api):
    """Route events to an InfluxDB integration backed by a recording transport."""

    state = {"status_code": 204, "requests": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return httpx.Response(state["status_code"])

    config = InfluxDBConfig(enabled=True, endpoint="http://influx.test/write", db="chirpstack")
    previous = api.app.state.integrations
    api.app.state.integrations = MultiIntegration(
        [InfluxDBIntegration(config, transport=httpx.MockTransport(handler))]
    )
    yield state
    api.app.state.integrations = previous
    api.app.dependency_overrides.clear()


def _uplink(**overrides) -> dict:
    body = {
        "applicationID": "1",
        "applicationName": "test-app",
        "deviceName": "test-dev",
        "devEUI": DEV_EUI,
        "rxInfo": [{"gatewayID": "0303030303030303", "rssi": -57, "loRaSNR": 7.5}],
        "txInfo": {"frequency": 868100000, "dr": 5},
        "fCnt": 10,
        "fPort": 5,
        "object": {"temperature": 21.5},
        "tags": {"site": "barn"},
    }
    body.update(overrides)
    return body


def test_healthz(api):
    resp = api.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_uplink_written_as_line_protocol(api, influx):
    resp = api.post("/v1/events", params={"event": "up"}, json=_uplink())
    assert resp.status_code == 204
    assert resp.headers["X-Request-ID"]

    (request,) = influx["requests"]
    assert request.content.decode("utf-8").splitlines() == [
        f"device_frmpayload_data_temperature,application_name=test-app,dev_eui={DEV_EUI},"
        "device_name=test-dev,f_port=5,site=barn value=21.500000",
        f"device_uplink,application_name=test-app,dev_eui={DEV_EUI},device_name=test-dev,"
        "dr=5,frequency=868100000,site=barn f_cnt=10i,rssi=-57i,snr=7.500000,value=1i",
    ]


def test_request_id_is_echoed(api, influx):
    resp = api.post(
        "/v1/events",
        params={"event": "up"},
        json=_uplink(),
        headers={"X-Request-ID": "abc123"},
    )
    assert resp.headers["X-Request-ID"] == "abc123"


def test_unknown_event_is_rejected(api, influx):
    resp = api.post("/v1/events", params={"event": "txack"}, json=_uplink())
    assert resp.status_code == 400
    assert influx["requests"] == []


def test_non_json_body_is_rejected(api, influx):
    resp = api.post(
        "/v1/events",
        params={"event": "up"},
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400


def test_invalid_payload_is_rejected(api, influx):
    resp = api.post("/v1/events", params={"event": "up"}, json=_uplink(devEUI="not-an-eui"))
    assert resp.status_code == 422
    assert influx["requests"] == []


def test_unsupported_value_is_rejected_without_partial_write(api, influx):
    resp = api.post(
        "/v1/events",
        params={"event": "up"},
        json=_uplink(object={"ok": 1, "counter": 2**64}),
    )
    assert resp.status_code == 422
    assert "counter" in resp.json()["detail"]
    assert influx["requests"] == []


def test_sink_failure_maps_to_bad_gateway(api, influx):
    influx["status_code"] = 500
    resp = api.post("/v1/events", params={"event": "up"}, json=_uplink())
    assert resp.status_code == 502


def test_raw_payload_decoded_with_cayenne(api, influx):
    api.app.dependency_overrides[get_settings] = lambda: Settings(payload_codec="cayenne_lpp")
    data = base64.b64encode(bytes.fromhex("03670110")).decode("ascii")
    resp = api.post("/v1/events", params={"event": "up"}, json=_uplink(object=None, data=data))
    assert resp.status_code == 204

    lines = influx["requests"][0].content.decode("utf-8").splitlines()
    assert lines[0].startswith("device_frmpayload_data_temperature_sensor_3,")
    assert lines[0].endswith(" value=27.200000")


def test_undecodable_payload_still_forwards_uplink(api, influx):
    api.app.dependency_overrides[get_settings] = lambda: Settings(payload_codec="cayenne_lpp")
    data = base64.b64encode(b"\x03\xff").decode("ascii")
    resp = api.post("/v1/events", params={"event": "up"}, json=_uplink(object=None, data=data))
    assert resp.status_code == 204

    lines = influx["requests"][0].content.decode("utf-8").splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("device_uplink,")


def test_status_event_and_stats(api, influx):
    body = {
        "applicationName": "test-app",
        "deviceName": "test-device",
        "devEUI": DEV_EUI,
        "margin": 10,
        "externalPowerSource": True,
        "batteryLevel": 0,
    }
    resp = api.post("/v1/events", params={"event": "status"}, json=body)
    assert resp.status_code == 204
    assert influx["requests"][0].content.decode("utf-8") == (
        f"device_status_margin,application_name=test-app,dev_eui={DEV_EUI},device_name=test-device value=10i"
    )

    status = api.get("/v1/status").json()
    assert status["integrations"] == ["influxdb"]
    assert status["stats"]["influxdb"] == {"sent": 1, "failed": 0}
    assert status["payload_codec"] == "none"


def test_non_finite_json_number_is_rejected(api, influx):
    body = (
        '{"devEUI": "0102030405060708", "deviceName": "test-device", "batteryLevel": NaN}'
    )
    resp = api.post(
        "/v1/events",
        params={"event": "status"},
        content=body.encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 422
    assert influx["requests"] == []


def test_huge_integer_coordinate_is_rejected(api, influx):
    resp = api.post(
        "/v1/events",
        params={"event": "up"},
        json=_uplink(object={"gps": {"latitude": 10**400, "longitude": 1.0}}),
    )
    assert resp.status_code == 422
    assert "device_frmpayload_data_gps_location" in resp.json()["detail"]
    assert influx["requests"] == []
