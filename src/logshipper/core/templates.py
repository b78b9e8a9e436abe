"""
Per-record field substitution for destination names and message bodies.

Supported references inside a template:

- ``%{field}``: top-level attribute
- ``%{[outer][inner]}``: nested attribute path
- ``%{+%s}``: record timestamp as epoch seconds
- ``%{+FORMAT}``: record timestamp formatted with ``strftime`` (UTC)

A reference that cannot be resolved is left in the output verbatim, so a
misconfigured template yields a visibly odd stream name instead of an error.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Mapping

from .serialization import canonical_json

_REFERENCE = re.compile(r"%\{([^}]+)\}")
_PATH_PART = re.compile(r"\[([^\]]+)\]")

_MISSING = object()


def _parse_path(ref: str) -> tuple[str, ...]:
    if ref.startswith("["):
        parts = tuple(_PATH_PART.findall(ref))
        if parts:
            return parts
    return (ref,)


def _lookup(attributes: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    current: Any = attributes
    for part in path:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.lstrip("-").isdigit():
            try:
                current = current[int(part)]
            except IndexError:
                return _MISSING
        else:
            return _MISSING
    return _MISSING if current is None else current


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return canonical_json(value)
    if isinstance(value, (list, tuple)):
        return ",".join(_to_text(v) for v in value)
    return str(value)


class FieldTemplate:
    """Compiled ``%{...}`` template."""

    __slots__ = ("template", "_static")

    def __init__(self, template: str) -> None:
        self.template = template
        self._static = _REFERENCE.search(template) is None

    def __repr__(self) -> str:
        return f"FieldTemplate({self.template!r})"

    def __bool__(self) -> bool:
        return bool(self.template)

    @property
    def is_static(self) -> bool:
        return self._static

    def render(
        self,
        attributes: Mapping[str, Any],
        timestamp: datetime | None = None,
    ) -> str:
        if self._static:
            return self.template

        def _substitute(match: re.Match[str]) -> str:
            ref = match.group(1).strip()
            if ref.startswith("+"):
                if timestamp is None:
                    return match.group(0)
                when = timestamp.astimezone(timezone.utc)
                if ref == "+%s":
                    return str(int(when.timestamp()))
                return when.strftime(ref[1:])
            value = _lookup(attributes, _parse_path(ref))
            if value is _MISSING:
                return match.group(0)
            return _to_text(value)

        return _REFERENCE.sub(_substitute, self.template)
