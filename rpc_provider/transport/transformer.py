"""Rich-value JSON transformer for the RPC wire format.

Values that plain JSON cannot carry (datetimes, sets, tuples, dicts with
non-string keys, large ints, non-finite floats and registered custom types)
are written as JSON-compatible stand-ins and annotated by path::

    {"json": {"at": "2024-01-01T00:00:00+00:00"}, "meta": {"values": {"at": "Date"}}}

Paths are dotted; a literal ``.`` inside a key is escaped as ``\\.``.
An annotation on the value itself is stored under ``meta["root"]``.
"""

import copy
import datetime
import math
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

MAX_SAFE_INTEGER = 2**53 - 1

Annotation = Union[str, List[str]]


@dataclass
class CustomType:
    """A user-registered value kind carried as ``["custom", name]``."""

    name: str
    cls: type
    serialize: Callable[[Any], Any]
    deserialize: Callable[[Any], Any]


def escape_key(key: str) -> str:
    return key.replace("\\", "\\\\").replace(".", "\\.")


def split_path(path: str) -> List[str]:
    """Split an escaped dotted path into its key segments."""
    segments: List[str] = []
    current: List[str] = []
    escaped = False
    for char in path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
    segments.append("".join(current))
    return segments


def _parse_datetime(value: str) -> datetime.datetime:
    # fromisoformat only accepts a trailing "Z" from Python 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(value)


class RichJSONTransformer:
    """Symmetric encoder/decoder applied to request inputs and response data."""

    def __init__(self):
        self._custom: Dict[str, CustomType] = {}
        self.register_custom("date", datetime.date, lambda v: v.isoformat(), datetime.date.fromisoformat)
        self.register_custom("Decimal", Decimal, str, Decimal)
        self.register_custom("UUID", uuid.UUID, str, uuid.UUID)

    def register_custom(
        self,
        name: str,
        cls: type,
        serialize: Callable[[Any], Any],
        deserialize: Callable[[Any], Any],
    ) -> None:
        """
        Register a custom value kind.

        Args:
            name: Wire name of the kind, must match on both ends
            cls: Python type matched with isinstance
            serialize: Converts an instance into a JSON-compatible value
            deserialize: Inverse of serialize
        """
        self._custom[name] = CustomType(name=name, cls=cls, serialize=serialize, deserialize=deserialize)

    def serialize(self, value: Any) -> Dict[str, Any]:
        """Encode a value into the ``{"json", "meta"}`` envelope."""
        annotations: Dict[Tuple[str, ...], Annotation] = {}
        data = self._walk(value, (), annotations)
        result: Dict[str, Any] = {"json": data}
        if annotations:
            meta: Dict[str, Any] = {}
            root = annotations.pop((), None)
            if root is not None:
                meta["root"] = root
            if annotations:
                meta["values"] = {".".join(escape_key(p) for p in path): a for path, a in annotations.items()}
            result["meta"] = meta
        return result

    def deserialize(self, payload: Dict[str, Any]) -> Any:
        """Decode a ``{"json", "meta"}`` envelope back into Python values."""
        if not isinstance(payload, dict) or "json" not in payload:
            raise ValueError("Serialized payload must be an object with a 'json' key")

        data = copy.deepcopy(payload["json"])
        meta = payload.get("meta") or {}
        entries = sorted(
            ((split_path(path), annotation) for path, annotation in (meta.get("values") or {}).items()),
            key=lambda entry: len(entry[0]),
            reverse=True,
        )
        # Deepest first, so containers are rebuilt after their children
        for segments, annotation in entries:
            parent = data
            for segment in segments[:-1]:
                parent = parent[int(segment)] if isinstance(parent, list) else parent[segment]
            last: Union[str, int] = segments[-1]
            if isinstance(parent, list):
                last = int(last)
            parent[last] = self._restore(parent[last], annotation)

        if "root" in meta:
            data = self._restore(data, meta["root"])
        return data

    def _walk(self, value: Any, path: Tuple[str, ...], annotations: Dict[Tuple[str, ...], Annotation]) -> Any:
        if value is None or isinstance(value, (str, bool)):
            return value
        if isinstance(value, int):
            if abs(value) > MAX_SAFE_INTEGER:
                annotations[path] = "bigint"
                return str(value)
            return value
        if isinstance(value, float):
            if math.isfinite(value):
                return value
            annotations[path] = "number"
            if math.isnan(value):
                return "NaN"
            return "Infinity" if value > 0 else "-Infinity"
        # datetime before the custom lookup: it subclasses date
        if isinstance(value, datetime.datetime):
            annotations[path] = "Date"
            return value.isoformat()
        for custom in self._custom.values():
            if isinstance(value, custom.cls):
                annotations[path] = ["custom", custom.name]
                return custom.serialize(value)
        if isinstance(value, (set, frozenset)):
            annotations[path] = "set" if isinstance(value, set) else "frozenset"
            return [self._walk(item, path + (str(i),), annotations) for i, item in enumerate(value)]
        if isinstance(value, tuple):
            annotations[path] = "tuple"
            return [self._walk(item, path + (str(i),), annotations) for i, item in enumerate(value)]
        if isinstance(value, list):
            return [self._walk(item, path + (str(i),), annotations) for i, item in enumerate(value)]
        if isinstance(value, dict):
            if all(isinstance(key, str) for key in value):
                return {key: self._walk(item, path + (key,), annotations) for key, item in value.items()}
            annotations[path] = "map"
            return [
                [
                    self._walk(key, path + (str(i), "0"), annotations),
                    self._walk(item, path + (str(i), "1"), annotations),
                ]
                for i, (key, item) in enumerate(value.items())
            ]
        raise TypeError(f"Object of type {type(value).__name__} is not serializable")

    def _restore(self, value: Any, annotation: Annotation) -> Any:
        if isinstance(annotation, list):
            if len(annotation) != 2 or annotation[0] != "custom":
                raise ValueError(f"Unknown annotation: {annotation!r}")
            custom: Optional[CustomType] = self._custom.get(annotation[1])
            if custom is None:
                raise ValueError(f"Unknown custom type: {annotation[1]}")
            return custom.deserialize(value)
        if annotation == "Date":
            return _parse_datetime(value)
        if annotation == "set":
            return set(value)
        if annotation == "frozenset":
            return frozenset(value)
        if annotation == "tuple":
            return tuple(value)
        if annotation == "map":
            return {key: item for key, item in value}
        if annotation == "bigint":
            return int(value)
        if annotation == "number":
            return float(value)
        raise ValueError(f"Unknown annotation: {annotation!r}")


# Shared default instance
transformer = RichJSONTransformer()
