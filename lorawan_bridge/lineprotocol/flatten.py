"""Depth-first flattening of decoded payload trees into measurement leaves."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from lorawan_bridge.lineprotocol.geohash import LOCATION_KEY, combine_location
from lorawan_bridge.lineprotocol.values import FieldValue, UnsupportedValueKind, is_scalar, to_field_value

PATH_SEPARATOR = "_"

PathKey = Tuple[str, ...]


@runtime_checkable
class EnumerableObject(Protocol):
    """Anything able to list its own (key, value) children.

    Structured decoder payloads implement this directly; plain mappings and
    sequences are wrapped by :func:`as_enumerable`.
    """

    def iter_children(self) -> Iterable[Tuple[Any, Any]]:
        ...


class MappingObject:
    def __init__(self, mapping: Mapping):
        self._mapping = mapping

    def iter_children(self) -> Iterable[Tuple[Any, Any]]:
        return self._mapping.items()


class SequenceObject:
    def __init__(self, items: Sequence):
        self._items = items

    def iter_children(self) -> Iterable[Tuple[Any, Any]]:
        return enumerate(self._items)


def as_enumerable(value: Any) -> Optional[EnumerableObject]:
    if isinstance(value, EnumerableObject):
        return value
    if isinstance(value, Mapping):
        return MappingObject(value)
    if isinstance(value, (list, tuple)):
        return SequenceObject(value)
    return None


@dataclass(frozen=True)
class Leaf:
    path: PathKey
    fields: Dict[str, FieldValue]

    @property
    def name(self) -> str:
        return join_path(self.path)


def join_path(path: Iterable[str]) -> str:
    return PATH_SEPARATOR.join(path)


def flatten(root: Any, prefix: PathKey = ()) -> Iterator[Leaf]:
    """Yield one leaf per scalar in ``root``; ``None`` leaves are skipped.

    Latitude/longitude siblings are folded into a single ``location`` leaf before
    their level is expanded; a literal ``location`` sibling next to such a pair
    is rejected rather than emitted twice. Raises :class:`UnsupportedValueKind`
    as soon as a child is neither a scalar nor enumerable.
    """

    if root is None:
        return
    if is_scalar(root):
        yield Leaf(prefix, {"value": to_field_value(root, path=join_path(prefix))})
        return
    root_obj = as_enumerable(root)
    if root_obj is None:
        raise UnsupportedValueKind(root, path=join_path(prefix))

    stack: List[Tuple[PathKey, EnumerableObject]] = [(prefix, root_obj)]
    while stack:
        path, obj = stack.pop()
        children = [(str(key), value) for key, value in obj.iter_children()]
        location_path = path + (LOCATION_KEY,)
        location, children = combine_location(children, path=join_path(location_path))
        if location is not None:
            if any(key == LOCATION_KEY for key, _ in children):
                raise UnsupportedValueKind(
                    dict(children)[LOCATION_KEY],
                    path=join_path(location_path),
                    reason="key collides with the combined latitude/longitude location",
                )
            yield Leaf(location_path, location)

        nested: List[Tuple[PathKey, EnumerableObject]] = []
        for key, value in children:
            child_path = path + (key,)
            if value is None:
                continue
            if is_scalar(value):
                yield Leaf(child_path, {"value": to_field_value(value, path=join_path(child_path))})
                continue
            child = as_enumerable(value)
            if child is None:
                raise UnsupportedValueKind(value, path=join_path(child_path))
            nested.append((child_path, child))
        # reversed so siblings are expanded in their listed order
        stack.extend(reversed(nested))
