"""
Canonical JSON serialization for record bodies.

Records without an explicit message template are shipped as their whole
attribute set encoded with orjson, keys sorted so identical records always
produce identical bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import orjson

from .errors import SerializationError

_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS | orjson.OPT_UTC_Z


def _default(obj: Any) -> Any:
    """Hook for types orjson does not handle natively."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


@dataclass
class SerializedView:
    """Serialized bytes plus convenience accessors."""

    data: bytes

    @property
    def view(self) -> memoryview:
        return memoryview(self.data)

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    def to_text(self) -> str:
        return self.data.decode("utf-8")


def serialize_mapping_to_json_bytes(payload: Mapping[str, Any]) -> SerializedView:
    """Serialize a mapping to canonical JSON bytes (sorted keys)."""
    try:
        data = orjson.dumps(dict(payload), default=_default, option=_OPTIONS)
    except TypeError as e:
        raise SerializationError("Serialization failed", cause=e) from e
    return SerializedView(data=data)


def canonical_json(payload: Mapping[str, Any]) -> str:
    return serialize_mapping_to_json_bytes(payload).to_text()
