from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lorawan_bridge.config import get_settings  # noqa: E402
from lorawan_bridge.schemas import DataUpPayload, RxInfo, StatusNotification, TxInfo  # noqa: E402

DEV_EUI = "0102030405060708"


@pytest.fixture(autouse=True)
def reset_settings_env(monkeypatch, tmp_path):
    for name in ("BRIDGE_INFLUXDB__ENABLED", "BRIDGE_MQTT__ENABLED", "BRIDGE_PAYLOAD_CODEC"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_uplink(obj=None, *, tags=None, rx_info=None, **overrides) -> DataUpPayload:
    values = dict(
        application_name="test-app",
        device_name="test-dev",
        dev_eui=DEV_EUI,
        f_cnt=10,
        f_port=20,
        tx_info=TxInfo(frequency=868100000, dr=2),
        rx_info=[RxInfo(lora_snr=snr, rssi=rssi) for snr, rssi in (rx_info or [])],
        object=obj,
        tags=tags if tags is not None else {"foo": "bar"},
    )
    values.update(overrides)
    return DataUpPayload(**values)


def make_status(**overrides) -> StatusNotification:
    values = dict(
        application_name="test-app",
        device_name="test-device",
        dev_eui=DEV_EUI,
        battery=123,
        battery_level=48.43,
        margin=10,
        tags={"foo": "bar"},
    )
    values.update(overrides)
    return StatusNotification(**values)


@pytest.fixture
def uplink_factory():
    return make_uplink


@pytest.fixture
def status_factory():
    return make_status
