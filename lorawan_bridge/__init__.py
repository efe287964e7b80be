"""Bridge LoRaWAN integration events to InfluxDB line protocol and MQTT."""
from __future__ import annotations

__version__ = "0.1.0"
