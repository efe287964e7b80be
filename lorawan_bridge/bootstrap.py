from __future__ import annotations

import logging
from typing import List

from lorawan_bridge.config import Settings
from lorawan_bridge.services.influxdb import InfluxDBIntegration
from lorawan_bridge.services.integrations import IntegrationError, Integrator, MultiIntegration
from lorawan_bridge.services.mqtt_publisher import MQTTEventPublisher

logger = logging.getLogger(__name__)


def build_integrations(settings: Settings) -> MultiIntegration:
    """Instantiate one integration per enabled sink."""

    integrations: List[Integrator] = []
    if settings.influxdb.enabled:
        logger.info("Enabling InfluxDB integration (%s)", settings.influxdb.endpoint)
        integrations.append(InfluxDBIntegration(settings.influxdb))
    if settings.mqtt.enabled:
        logger.info("Enabling MQTT integration (topic %s)", settings.mqtt.topic)
        integrations.append(MQTTEventPublisher(settings.mqtt))
    if not integrations:
        logger.warning("No integrations enabled; events will be accepted and dropped")
    return MultiIntegration(integrations)


async def start_integrations(multi: MultiIntegration) -> None:
    """Connect long-lived clients up front; failures are retried on first send."""

    for integration in multi.integrations:
        start = getattr(integration, "start", None)
        if not callable(start):
            continue
        try:
            await start()
        except IntegrationError as exc:
            logger.warning("%s integration not connected yet: %s", integration.name, exc)
