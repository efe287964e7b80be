"""Integration contract and fan-out to the configured sinks."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Protocol, Sequence

from lorawan_bridge.lineprotocol import UnsupportedValueKind

logger = logging.getLogger(__name__)

_HANDLERS = {
    "up": "send_data_up",
    "join": "send_join_notification",
    "ack": "send_ack_notification",
    "error": "send_error_notification",
    "status": "send_status_notification",
    "location": "send_location_notification",
}


class IntegrationError(RuntimeError):
    """A sink failed to accept an event (network, auth, broker errors)."""


class Integrator(Protocol):
    name: str

    async def send_data_up(self, pl: Any) -> None: ...

    async def send_join_notification(self, pl: Any) -> None: ...

    async def send_ack_notification(self, pl: Any) -> None: ...

    async def send_error_notification(self, pl: Any) -> None: ...

    async def send_status_notification(self, pl: Any) -> None: ...

    async def send_location_notification(self, pl: Any) -> None: ...

    async def aclose(self) -> None: ...


async def dispatch(integration: Integrator, event: str, pl: Any) -> None:
    handler = _HANDLERS.get(event)
    if handler is None:
        raise ValueError(f"Unknown event type {event!r}")
    await getattr(integration, handler)(pl)


class MultiIntegration:
    """Send every event to each integration in turn.

    All sinks are attempted even when one fails; afterwards an encoding error is
    re-raised first, otherwise the first sink error.
    """

    def __init__(self, integrations: Sequence[Integrator]):
        self.integrations: List[Integrator] = list(integrations)
        self.stats: Dict[str, Dict[str, int]] = defaultdict(lambda: {"sent": 0, "failed": 0})

    @property
    def names(self) -> List[str]:
        return [integration.name for integration in self.integrations]

    async def send(self, event: str, pl: Any) -> None:
        if event not in _HANDLERS:
            raise ValueError(f"Unknown event type {event!r}")
        errors: List[Exception] = []
        for integration in self.integrations:
            stats = self.stats[integration.name]
            try:
                await dispatch(integration, event, pl)
            except UnsupportedValueKind as exc:
                stats["failed"] += 1
                logger.warning("%s rejected %s event: %s", integration.name, event, exc)
                errors.append(exc)
            except Exception as exc:
                stats["failed"] += 1
                logger.error("%s failed to send %s event: %s", integration.name, event, exc)
                errors.append(exc)
            else:
                stats["sent"] += 1
        if not errors:
            return
        for exc in errors:
            if isinstance(exc, UnsupportedValueKind):
                raise exc
        raise errors[0]

    async def aclose(self) -> None:
        for integration in self.integrations:
            try:
                await integration.aclose()
            except Exception:
                logger.debug("Unable to close %s integration", integration.name, exc_info=True)

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return {name: dict(self.stats[name]) for name in self.names}
