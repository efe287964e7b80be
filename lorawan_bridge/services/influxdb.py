from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from lorawan_bridge.config import InfluxDBConfig
from lorawan_bridge.lineprotocol import encode_event
from lorawan_bridge.services.integrations import IntegrationError

logger = logging.getLogger(__name__)


class InfluxDBIntegration:
    """Write device events to an InfluxDB 1.x compatible ``/write`` endpoint."""

    name = "influxdb"

    def __init__(
        self,
        config: InfluxDBConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        auth = None
        if config.username:
            password = config.password.get_secret_value() if config.password else ""
            auth = httpx.BasicAuth(config.username, password)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
            auth=auth,
            transport=transport,
        )

    @property
    def query_params(self) -> Dict[str, str]:
        params = {"db": self.config.db, "precision": self.config.precision}
        if self.config.retention_policy_name:
            params["rp"] = self.config.retention_policy_name
        return params

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send_data_up(self, pl: Any) -> None:
        await self._write("up", pl)

    async def send_join_notification(self, pl: Any) -> None:
        await self._write("join", pl)

    async def send_ack_notification(self, pl: Any) -> None:
        await self._write("ack", pl)

    async def send_error_notification(self, pl: Any) -> None:
        await self._write("error", pl)

    async def send_status_notification(self, pl: Any) -> None:
        await self._write("status", pl)

    async def send_location_notification(self, pl: Any) -> None:
        await self._write("location", pl)

    async def _write(self, event: str, pl: Any) -> None:
        body = encode_event(event, pl)
        if not body:
            logger.debug("No measurements for %s event", event)
            return
        try:
            resp = await self._client.post(
                self.config.endpoint,
                params=self.query_params,
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise IntegrationError(f"influxdb write error: {exc}") from exc
        logger.info(
            "Measurements written to InfluxDB",
            extra={"lines": body.count("\n") + 1},
        )
