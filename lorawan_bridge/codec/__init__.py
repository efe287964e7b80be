"""Device payload codecs."""
from __future__ import annotations

from typing import Optional

from .cayenne_lpp import Accelerometer, CayenneDecodeError, CayenneLPP, GPSLocation, Gyrometer

PAYLOAD_CODECS = ("none", "cayenne_lpp")


def decode_payload(codec: str, data: Optional[bytes]) -> Optional[CayenneLPP]:
    """Decode raw FRMPayload bytes with the configured codec, if any."""

    if codec == "none" or not data:
        return None
    if codec == "cayenne_lpp":
        return CayenneLPP.decode(data)
    raise ValueError(f"Unknown payload codec {codec!r}")


__all__ = [
    "Accelerometer",
    "CayenneDecodeError",
    "CayenneLPP",
    "GPSLocation",
    "Gyrometer",
    "PAYLOAD_CODECS",
    "decode_payload",
]
