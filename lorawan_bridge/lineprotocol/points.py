"""Points, tag sets and the line-protocol body writer."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from lorawan_bridge.lineprotocol.values import FieldValue, encode_value

logger = logging.getLogger(__name__)

_TAG_ESCAPES = str.maketrans({" ": "\\ ", ",": "\\,", "=": "\\="})
_FIELD_KEY_ESCAPES = _TAG_ESCAPES
_MEASUREMENT_ESCAPES = str.maketrans({" ": "\\ ", ",": "\\,"})


def escape_tag(value: str) -> str:
    return value.translate(_TAG_ESCAPES)


def escape_field_key(value: str) -> str:
    return value.translate(_FIELD_KEY_ESCAPES)


def escape_measurement(value: str) -> str:
    return value.translate(_MEASUREMENT_ESCAPES)


@dataclass
class TagContext:
    """Identity, event and user tags attached to every point of one event."""

    application_name: str
    dev_eui: str
    device_name: str
    user_tags: Dict[str, str] = field(default_factory=dict)

    def identity(self) -> Dict[str, str]:
        return {
            "application_name": self.application_name,
            "dev_eui": self.dev_eui.lower(),
            "device_name": self.device_name,
        }

    def build(self, event_tags: Optional[Mapping[str, object]] = None) -> List[Tuple[str, str]]:
        """Merged, filtered and key-sorted tag list.

        Fixed tags win over user tags with the same key; the user tag is dropped
        and logged. Empty values are never emitted.
        """

        fixed: Dict[str, str] = dict(self.identity())
        for key, value in (event_tags or {}).items():
            if value is None:
                continue
            fixed[key] = str(value)
        merged = dict(fixed)
        for key, value in self.user_tags.items():
            if key in fixed:
                logger.warning("Dropping user tag %r: collides with a reserved tag", key)
                continue
            merged[key] = value
        return sorted((key, value) for key, value in merged.items() if key and value)


@dataclass
class Point:
    measurement: str
    tags: List[Tuple[str, str]]
    fields: Dict[str, FieldValue]

    def to_line(self) -> str:
        head = escape_measurement(self.measurement)
        tag_part = ",".join(f"{escape_tag(k)}={escape_tag(v)}" for k, v in sorted(self.tags))
        if tag_part:
            head = f"{head},{tag_part}"
        field_part = ",".join(
            f"{escape_field_key(key)}={encode_value(self.fields[key])}" for key in sorted(self.fields)
        )
        return f"{head} {field_part}"


def write_points(points: Iterable[Point]) -> str:
    """Render points sorted by measurement name, newline separated, no trailing newline."""

    lines = [point.to_line() for point in sorted(points, key=lambda p: p.measurement) if point.fields]
    return "\n".join(lines)
