"""FastAPI application receiving integration events and fanning them out to sinks."""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lorawan_bridge.bootstrap import build_integrations, start_integrations
from lorawan_bridge.config import get_settings
from lorawan_bridge.observability import configure_observability
from lorawan_bridge.routers import events as events_router
from lorawan_bridge.routers import root as root_router
from lorawan_bridge.services.integrations import MultiIntegration

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    multi = build_integrations(settings)
    await start_integrations(multi)
    app.state.integrations = multi
    app.state.started_at = time.monotonic()
    logger.info("Event bridge started with sinks: %s", ", ".join(multi.names) or "none")

    try:
        yield
    finally:
        multi: MultiIntegration | None = getattr(app.state, "integrations", None)
        if multi:
            await multi.aclose()
        logger.info("Event bridge stopped")


settings = get_settings()
app = FastAPI(title="LoRaWAN Event Bridge", lifespan=lifespan)
configure_observability(
    app,
    service_name=settings.service_name,
    service_version=settings.service_version,
    log_level=settings.log_level,
    otel_enabled=settings.otel_enabled,
    otlp_endpoint=settings.otel_exporter_otlp_endpoint,
    otlp_headers=settings.otel_exporter_otlp_headers,
    otel_sample_ratio=settings.otel_sample_ratio,
)

app.include_router(root_router.router)
app.include_router(events_router.router)


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("lorawan_bridge.main:app", host="0.0.0.0", port=8090)
