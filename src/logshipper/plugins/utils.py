"""
Plugin configuration helpers.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import ConfigurationError

M = TypeVar("M", bound=BaseModel)


def parse_plugin_config(
    model: type[M],
    config: M | Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> M:
    """Build a plugin config model from an instance, a mapping, or kwargs.

    Mappings may wrap the values in a ``{"config": {...}}`` envelope; keyword
    arguments override mapping values.
    """
    raw: dict[str, Any] = {}
    if isinstance(config, model):
        if not kwargs:
            return config
        raw.update(config.model_dump())
    elif config is not None:
        raw.update(config.get("config", config))
    raw.update(kwargs.get("config", kwargs))
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {model.__name__}: {e.error_count()} error(s)",
            cause=e,
            component_name=model.__name__,
        ) from e
