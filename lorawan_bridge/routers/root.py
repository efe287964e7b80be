from __future__ import annotations

import time
from typing import Dict

from fastapi import APIRouter, Depends, Request

from lorawan_bridge.config import Settings, get_settings
from lorawan_bridge.http_utils import integrations

router = APIRouter()


@router.get("/healthz")
async def healthz():
    return {"status": "ok"}


@router.get("/v1/status")
async def status_endpoint(request: Request, settings: Settings = Depends(get_settings)) -> Dict[str, object]:
    uptime = int(time.monotonic() - getattr(request.app.state, "started_at", time.monotonic()))
    multi = integrations(request.app)
    return {
        "service_name": settings.service_name,
        "service_version": settings.service_version,
        "uptime_seconds": uptime,
        "payload_codec": settings.payload_codec,
        "integrations": multi.names,
        "stats": multi.snapshot(),
    }
