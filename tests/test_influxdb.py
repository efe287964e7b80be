from __future__ import annotations

import asyncio
import base64

import httpx
import pytest

from conftest import DEV_EUI, make_status, make_uplink
from lorawan_bridge.config import InfluxDBConfig
from lorawan_bridge.lineprotocol import UnsupportedValueKind
from lorawan_bridge.services.influxdb import InfluxDBIntegration
from lorawan_bridge.services.integrations import IntegrationError


def _config(**overrides) -> InfluxDBConfig:
    values = dict(
        enabled=True,
        endpoint="http://influx.test/write",
        db="chirpstack",
        username="user",
        password="password",
        retention_policy_name="DEFAULT",
        precision="s",
    )
    values.update(overrides)
    return InfluxDBConfig(**values)


def _recording_transport(requests, status_code=204):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code)

    return httpx.MockTransport(handler)


def test_status_write_request():
    requests = []
    integration = InfluxDBIntegration(_config(), transport=_recording_transport(requests))

    async def runner():
        try:
            await integration.send_status_notification(make_status())
        finally:
            await integration.aclose()

    asyncio.run(runner())

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/write"
    assert dict(request.url.params) == {"db": "chirpstack", "precision": "s", "rp": "DEFAULT"}
    assert request.headers["Content-Type"] == "text/plain"
    expected_auth = base64.b64encode(b"user:password").decode("ascii")
    assert request.headers["Authorization"] == f"Basic {expected_auth}"
    tags = f"application_name=test-app,dev_eui={DEV_EUI},device_name=test-device,foo=bar"
    assert request.content.decode("utf-8") == "\n".join(
        [
            f"device_status_battery,{tags} value=123i",
            f"device_status_battery_level,{tags} value=48.430000",
            f"device_status_margin,{tags} value=10i",
        ]
    )


def test_rp_and_auth_are_optional():
    requests = []
    config = _config(retention_policy_name="", username=None, password=None)
    integration = InfluxDBIntegration(config, transport=_recording_transport(requests))

    asyncio.run(integration.send_data_up(make_uplink({"temperature": 21.5})))

    request = requests[0]
    assert "rp" not in request.url.params
    assert "Authorization" not in request.headers
    assert request.content.decode("utf-8").startswith("device_frmpayload_data_temperature,")


def test_empty_body_is_not_sent():
    requests = []
    integration = InfluxDBIntegration(_config(), transport=_recording_transport(requests))

    asyncio.run(integration.send_status_notification(make_status(battery=None, battery_level=None, margin=None)))

    assert requests == []


def test_http_error_status_raises_integration_error():
    requests = []
    integration = InfluxDBIntegration(_config(), transport=_recording_transport(requests, status_code=500))

    with pytest.raises(IntegrationError, match="influxdb write error"):
        asyncio.run(integration.send_data_up(make_uplink({"temperature": 21.5})))


def test_connection_error_raises_integration_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    integration = InfluxDBIntegration(_config(), transport=httpx.MockTransport(handler))

    with pytest.raises(IntegrationError):
        asyncio.run(integration.send_status_notification(make_status()))


def test_unsupported_value_sends_nothing():
    requests = []
    integration = InfluxDBIntegration(_config(), transport=_recording_transport(requests))

    with pytest.raises(UnsupportedValueKind):
        asyncio.run(integration.send_data_up(make_uplink({"ok": 1, "bad": float("inf")})))
    assert requests == []
