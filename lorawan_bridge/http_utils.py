from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, status
from pydantic import ValidationError

from lorawan_bridge.codec import CayenneDecodeError, decode_payload
from lorawan_bridge.config import Settings
from lorawan_bridge.schemas import EVENT_MODELS, DataUpPayload
from lorawan_bridge.services.integrations import MultiIntegration

logger = logging.getLogger(__name__)


def integrations(app: FastAPI) -> MultiIntegration:
    multi: MultiIntegration | None = getattr(app.state, "integrations", None)
    if multi is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Integrations not ready")
    return multi


def parse_event(event: str, body: Any):
    model = EVENT_MODELS.get(event)
    if model is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown event type {event!r}")
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def apply_payload_codec(pl: DataUpPayload, settings: Settings) -> DataUpPayload:
    """Fill ``object`` from the raw payload when the server sent no decoded object."""

    if pl.object is not None or not pl.data or settings.payload_codec == "none":
        return pl
    try:
        pl.object = decode_payload(settings.payload_codec, pl.data)
    except CayenneDecodeError as exc:
        logger.warning("Unable to decode payload with %s: %s", settings.payload_codec, exc)
    return pl
