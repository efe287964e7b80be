"""Publish integration events as JSON on an MQTT v5 broker."""
from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, Callable, Optional

from aiomqtt import Client, MqttError, ProtocolVersion
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from lorawan_bridge.config import MQTTPublisherConfig
from lorawan_bridge.services.integrations import IntegrationError

logger = logging.getLogger(__name__)


def routing_properties(event: str, dev_eui: str) -> Properties:
    properties = Properties(PacketTypes.PUBLISH)
    properties.ContentType = "application/json"
    properties.UserProperty = [("event", event), ("devEUI", dev_eui)]
    return properties


class MQTTEventPublisher:
    """Independent JSON serialization of events; does not use line protocol."""

    name = "mqtt"

    def __init__(
        self,
        config: MQTTPublisherConfig,
        client_factory: Optional[Callable[[], Client]] = None,
    ) -> None:
        self.config = config
        self._client_factory = client_factory or self._default_client
        self._stack: Optional[AsyncExitStack] = None
        self._client: Optional[Client] = None
        self._lock = asyncio.Lock()

    def _default_client(self) -> Client:
        return Client(
            self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password.get_secret_value() if self.config.password else None,
            protocol=ProtocolVersion.V5,
        )

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        async with self._lock:
            await self._connect()

    async def aclose(self) -> None:
        async with self._lock:
            await self._disconnect()

    async def _connect(self) -> Client:
        # caller holds self._lock
        if self._client is not None:
            return self._client
        logger.info("Connecting to MQTT broker %s:%s", self.config.host, self.config.port)
        stack = AsyncExitStack()
        try:
            client = await stack.enter_async_context(self._client_factory())
        except MqttError as exc:
            await stack.aclose()
            raise IntegrationError(f"mqtt connect error: {exc}") from exc
        self._stack = stack
        self._client = client
        return client

    async def _disconnect(self) -> None:
        # caller holds self._lock
        stack = self._stack
        self._stack = None
        self._client = None
        if stack is not None:
            logger.info("Closing MQTT publisher")
            await stack.aclose()

    async def send_data_up(self, pl: Any) -> None:
        await self._publish("up", pl)

    async def send_join_notification(self, pl: Any) -> None:
        await self._publish("join", pl)

    async def send_ack_notification(self, pl: Any) -> None:
        await self._publish("ack", pl)

    async def send_error_notification(self, pl: Any) -> None:
        await self._publish("error", pl)

    async def send_status_notification(self, pl: Any) -> None:
        await self._publish("status", pl)

    async def send_location_notification(self, pl: Any) -> None:
        await self._publish("location", pl)

    async def _publish(self, event: str, pl: Any) -> None:
        async with self._lock:
            client = await self._connect()
        body = pl.model_dump_json(by_alias=True, exclude_none=True)
        try:
            await client.publish(
                self.config.topic,
                payload=body.encode("utf-8"),
                qos=self.config.qos,
                properties=routing_properties(event, pl.dev_eui),
            )
        except MqttError as exc:
            # drop the broken client so the next event reconnects
            async with self._lock:
                if self._client is client:
                    await self._disconnect()
            raise IntegrationError(f"mqtt publish error: {exc}") from exc
        logger.info("Event published")
