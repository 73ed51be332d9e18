"""
Base class and helpers for generated DTOs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseDTO(BaseModel):
    """
    Base for every generated transfer object.

    Record-typed fields hold record instances as-is; DTOs are mutable so the
    generated setters work.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, from_attributes=True)


def _hashable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return tuple(sorted(((k, _hashable(v)) for k, v in value.items()), key=repr))
    if isinstance(value, (set, frozenset)):
        return frozenset(_hashable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return tuple(_hashable(v) for v in value)
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


def value_hash(*values: Any) -> int:
    """Hash over field values, tolerating list/dict/set fields."""
    return hash(tuple(_hashable(v) for v in values))


def value_repr(name: str, dto: BaseModel, fields: tuple[str, ...]) -> str:
    """``CustomerDTO [id=1, name='Ada']``"""
    body = ", ".join(f"{f}={getattr(dto, f)!r}" for f in fields)
    return f"{name} [{body}]"
