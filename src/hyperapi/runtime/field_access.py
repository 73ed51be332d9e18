"""
Field access capability used by the generic dispatcher.

``ReflectionFieldAccessor`` converts records to plain maps and back using the
field catalog. Related records collapse to ``<field>_id`` keys and
collections of records to a ``{"count", "type"}`` summary; on the way back
those reduced keys are skipped.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol, TypeVar, runtime_checkable
from uuid import UUID

from hyperapi.core.field_catalog import (
    FieldCatalog,
    navigable_type,
    resolve_collection,
    strip_optional,
)
from hyperapi.errors import BadRequestError, ConfigurationError
from hyperapi.runtime.repository import unwrap

T = TypeVar("T")

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@runtime_checkable
class FieldAccessor(Protocol):
    def to_map(self, instance: Any, ignored: Iterable[str] = ()) -> dict[str, Any]: ...

    def to_instance(
        self, record_type: type[T], data: Mapping[str, Any], ignored: Iterable[str] = ()
    ) -> T: ...


# =============================================================================
# Coercion
# =============================================================================


def _fail(value: Any, target: type, error: Exception | None = None) -> BadRequestError:
    detail = f": {error}" if error else ""
    return BadRequestError(f"Cannot convert {value!r} to {target.__name__}{detail}")


def coerce_value(value: Any, annotation: Any) -> Any:
    """
    Convert a JSON-ish value to the declared field type.

    Numbers widen to the target numeric type; strings parse into numbers,
    booleans, datetimes, dates, UUIDs and enums. Other values pass through.

    Raises:
        BadRequestError: The value cannot represent the target type
    """
    if value is None:
        return None
    target = strip_optional(annotation)
    if not isinstance(target, type):
        return value
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        return value

    try:
        if target is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE:
                    return True
                if lowered in _FALSE:
                    return False
                raise _fail(value, target)
            if isinstance(value, (int, float)):
                return bool(value)
        elif target in (int, float):
            if isinstance(value, bool):
                raise _fail(value, target)
            if isinstance(value, float) and target is int:
                if not value.is_integer():
                    raise _fail(value, target)
                return int(value)
            if isinstance(value, (int, float, Decimal, str)):
                return target(value)
        elif target is Decimal:
            if isinstance(value, (int, float, str)) and not isinstance(value, bool):
                return Decimal(str(value))
        elif target is datetime:
            if isinstance(value, str):
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
        elif target is date:
            if isinstance(value, str):
                return date.fromisoformat(value)
        elif target is UUID:
            if isinstance(value, str):
                return UUID(value)
        elif issubclass(target, enum.Enum):
            return target(value)
        elif target is str:
            return str(value)
        elif dataclasses.is_dataclass(target) and isinstance(value, Mapping):
            return target(**value)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise _fail(value, target, e) from e
    return value


# =============================================================================
# Relation detection
# =============================================================================


def _identity_type(annotation: Any) -> type | None:
    """The related record type when ``annotation`` names one with an ``id``."""
    target = navigable_type(annotation)
    if target is not None and "id" in FieldCatalog(target).names:
        return target
    return None


def relation_fields(record_type: type) -> dict[str, type]:
    """Fields holding related records (or collections of them) -> related type."""
    out: dict[str, type] = {}
    for field in FieldCatalog(record_type).fields:
        related = _identity_type(field.annotation)
        if related is not None:
            out[field.name] = related
    return out


def _plain(value: Any) -> Any:
    value = unwrap(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class ReflectionFieldAccessor:
    """Default ``FieldAccessor`` built on the field catalog."""

    def to_map(self, instance: Any, ignored: Iterable[str] = ()) -> dict[str, Any]:
        instance = unwrap(instance)
        if instance is None:
            return {}
        skip = set(ignored)
        record_type = type(instance)
        relations = relation_fields(record_type)
        out: dict[str, Any] = {}
        for field in FieldCatalog(record_type).fields:
            if field.name in skip:
                continue
            value = getattr(instance, field.name, None)
            related = relations.get(field.name)
            if related is not None and field.is_collection:
                items = list(value.values()) if isinstance(value, dict) else list(value or ())
                out[field.name] = {"count": len(items), "type": related.__name__}
            elif related is not None:
                target = unwrap(value)
                out[f"{field.name}_id"] = getattr(target, "id", None) if target is not None else None
            elif dataclasses.is_dataclass(value) and not isinstance(value, type):
                out[field.name] = dataclasses.asdict(unwrap(value))
            else:
                out[field.name] = _plain(value)
        return out

    def to_instance(
        self, record_type: type[T], data: Mapping[str, Any], ignored: Iterable[str] = ()
    ) -> T:
        """
        Build a record from a map: no-arg construction, then field set.

        Raises:
            BadRequestError: Unknown field or unconvertible value
        """
        catalog = FieldCatalog(record_type)
        relations = relation_fields(record_type)
        reduced = {f"{name}_id" for name in relations}
        skip = set(ignored)

        try:
            instance = record_type()
        except TypeError as e:
            raise ConfigurationError(
                f"{record_type.__name__} must be constructible without arguments: {e}"
            ) from e
        for key, value in data.items():
            if key in skip or key in reduced:
                continue
            field = catalog.get(key)
            if field is None:
                raise BadRequestError(f"Unknown field '{key}' for {record_type.__name__}")
            if key in relations:
                # Related records are not rebuilt from maps; callers carry them over.
                continue
            setattr(instance, key, self._coerce_field(value, field.annotation))
        return instance

    def _coerce_field(self, value: Any, annotation: Any) -> Any:
        kind, args = resolve_collection(annotation)
        if kind is None or value is None:
            return coerce_value(value, annotation)
        if kind == "dict":
            if not isinstance(value, Mapping):
                raise BadRequestError(f"Expected an object, got {type(value).__name__}")
            return {coerce_value(k, args[0]): coerce_value(v, args[1]) for k, v in value.items()}
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise BadRequestError(f"Expected an array, got {type(value).__name__}")
        items = [coerce_value(v, args[0]) for v in value]
        if kind == "set":
            return set(items)
        if kind == "tuple":
            return tuple(items)
        return items
