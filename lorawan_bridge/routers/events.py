from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from lorawan_bridge.config import Settings, get_settings
from lorawan_bridge.http_utils import apply_payload_codec, integrations, parse_event
from lorawan_bridge.lineprotocol import UnsupportedValueKind
from lorawan_bridge.observability import bind_event_context, event_span
from lorawan_bridge.schemas import DataUpPayload
from lorawan_bridge.services.integrations import IntegrationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


@router.post("/events", status_code=status.HTTP_204_NO_CONTENT)
async def ingest_event(
    request: Request,
    event: str = Query(..., description="up, join, ack, error, status or location"),
    settings: Settings = Depends(get_settings),
) -> Response:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be JSON") from exc

    pl = parse_event(event, body)
    multi = integrations(request.app)
    with bind_event_context(event=event, dev_eui=pl.dev_eui), event_span(event, pl.dev_eui):
        if isinstance(pl, DataUpPayload):
            apply_payload_codec(pl, settings)
        try:
            await multi.send(event, pl)
        except UnsupportedValueKind as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except IntegrationError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        logger.debug("Event handled")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
