"""
Field catalog - reflects over a record type's declared fields.

Produces ordered, immutable ``FieldDescriptor`` tuples. Base-class fields
come first, then subclass fields, following dataclass field order. Fields
whose name starts with ``_`` (internal/synthetic) and class-level
``ClassVar`` fields are never listed.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import types
import typing
from functools import lru_cache
from typing import Any, ClassVar, get_args, get_origin

from hyperapi.errors import MappingPathError
from hyperapi.specs.fields import CollectionKind, FieldDescriptor

INTERNAL_PREFIX = "_"

_SCALAR_BUILTINS = (str, bytes, int, float, bool, complex)

# =============================================================================
# Annotation helpers
# =============================================================================


def strip_optional(annotation: Any) -> Any:
    """Return ``X`` for ``X | None`` / ``Optional[X]``; other annotations unchanged."""
    origin = get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def type_tag(annotation: Any) -> str:
    """Readable name for an annotation (``int``, ``list[Tag]``, ``Tag | None``)."""
    if annotation is None or annotation is type(None):
        return "None"
    if annotation is Any:
        return "Any"
    if isinstance(annotation, str):
        return annotation
    if isinstance(annotation, typing.ForwardRef):
        return annotation.__forward_arg__
    origin = get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return " | ".join(type_tag(a) for a in get_args(annotation))
    if origin is not None:
        args = get_args(annotation)
        name = getattr(origin, "__name__", str(origin))
        if not args:
            return name
        rendered = ", ".join("..." if a is Ellipsis else type_tag(a) for a in args)
        return f"{name}[{rendered}]"
    if isinstance(annotation, type):
        return annotation.__name__
    return str(annotation)


def _collection_kind(container: type) -> CollectionKind | None:
    if not isinstance(container, type) or issubclass(container, (str, bytes, bytearray)):
        return None
    if issubclass(container, collections.abc.Mapping):
        return "dict"
    if issubclass(container, (set, frozenset, collections.abc.Set)):
        return "set"
    if issubclass(container, tuple):
        return "tuple"
    if issubclass(container, (list, collections.abc.Collection)):
        return "list"
    return None


def _generic_args(container: type) -> tuple[Any, ...]:
    """Walk declared generic bases of a container subclass (``class Tags(list[Tag])``)."""
    for klass in container.__mro__:
        for base in getattr(klass, "__orig_bases__", ()):
            if _collection_kind(get_origin(base) or object) is not None and get_args(base):
                return get_args(base)
    return ()


def resolve_collection(annotation: Any) -> tuple[CollectionKind | None, tuple[Any, ...]]:
    """
    Resolve a field annotation to its container kind and element types.

    Returns ``(None, ())`` for non-collections, ``("dict", (K, V))`` for
    mappings and ``(kind, (T,))`` for sequences and sets. Unresolved element
    types come back as ``object``.
    """
    annotation = strip_optional(annotation)
    origin = get_origin(annotation)
    container = origin if origin is not None else annotation
    kind = _collection_kind(container) if isinstance(container, type) else None
    if kind is None:
        return None, ()

    args = tuple(a for a in get_args(annotation) if a is not Ellipsis)
    if not args and isinstance(container, type):
        args = _generic_args(container)

    if kind == "dict":
        if len(args) >= 2:
            return kind, (args[0], args[1])
        return kind, (object, object)
    return kind, (args[0],) if args else (object,)


def navigable_type(annotation: Any) -> type | None:
    """
    The record-like type a dotted mapping path can step into, if any.

    Collections step into their element type; scalars and builtins are not
    navigable.
    """
    kind, args = resolve_collection(annotation)
    target = args[-1] if kind == "dict" else (args[0] if kind else strip_optional(annotation))
    if not isinstance(target, type) or target is object:
        return None
    if issubclass(target, _SCALAR_BUILTINS) or target.__module__ == "builtins":
        return None
    if dataclasses.is_dataclass(target) or getattr(target, "__annotations__", None):
        return target
    return None


# =============================================================================
# Scanning
# =============================================================================


def _resolved_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        # Unresolvable forward references: keep the raw annotations.
        raw: dict[str, Any] = {}
        for klass in reversed(record_type.__mro__):
            raw.update(getattr(klass, "__annotations__", {}))
        return raw


def _is_classvar(annotation: Any) -> bool:
    if annotation is ClassVar or get_origin(annotation) is ClassVar:
        return True
    return isinstance(annotation, str) and annotation.startswith(("ClassVar", "typing.ClassVar"))


def _declared_names(record_type: type, hints: dict[str, Any]) -> list[str]:
    if dataclasses.is_dataclass(record_type):
        return [f.name for f in dataclasses.fields(record_type)]
    names: list[str] = []
    for klass in reversed(record_type.__mro__):
        for name in getattr(klass, "__annotations__", {}):
            if name not in names:
                names.append(name)
    return [n for n in names if not _is_classvar(hints.get(n))]


def describe_field(name: str, annotation: Any) -> FieldDescriptor:
    kind, args = resolve_collection(annotation)
    stripped = strip_optional(annotation)
    descriptor: dict[str, Any] = {
        "name": name,
        "type_tag": type_tag(annotation),
        "annotation": annotation,
        "is_collection": kind is not None,
        "collection_kind": kind,
        "is_boolean": stripped is bool,
    }
    if kind == "dict":
        descriptor["key_type"] = type_tag(args[0])
        descriptor["value_type"] = type_tag(args[1])
    elif kind is not None:
        descriptor["element_type"] = type_tag(args[0])
    return FieldDescriptor(**descriptor)


@lru_cache(maxsize=None)
def _scan(record_type: type) -> tuple[FieldDescriptor, ...]:
    hints = _resolved_hints(record_type)
    out: list[FieldDescriptor] = []
    for name in _declared_names(record_type, hints):
        if name.startswith(INTERNAL_PREFIX):
            continue
        annotation = hints.get(name, Any)
        if _is_classvar(annotation):
            continue
        out.append(describe_field(name, annotation))
    return tuple(out)


class FieldCatalog:
    """
    Declared fields of one record type.

    Scanning is pure and memoized per type; ``select`` filters out ignored
    names without rescanning.
    """

    def __init__(self, record_type: type):
        self.record_type = record_type
        self.fields: tuple[FieldDescriptor, ...] = _scan(record_type)

    @classmethod
    def for_type(
        cls, record_type: type, ignored: typing.Iterable[str] = ()
    ) -> tuple[FieldDescriptor, ...]:
        return cls(record_type).select(ignored)

    def select(self, ignored: typing.Iterable[str] = ()) -> tuple[FieldDescriptor, ...]:
        skip = set(ignored)
        return tuple(f for f in self.fields if f.name not in skip)

    def get(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def validate_path(self, path: str) -> None:
        """
        Check a dotted mapping path (``customer.address.city``) against the type.

        Raises:
            MappingPathError: A segment does not exist, or an intermediate
                segment cannot be stepped into.
        """
        current: type = self.record_type
        parts = [p.strip() for p in path.split(".")]
        for i, part in enumerate(parts):
            descriptor = FieldCatalog(current).get(part)
            if descriptor is None:
                raise MappingPathError(self.record_type.__name__, path, part, "field not found")
            if i < len(parts) - 1:
                nxt = navigable_type(descriptor.annotation)
                if nxt is None:
                    raise MappingPathError(
                        self.record_type.__name__, path, part, "is not a navigable type"
                    )
                current = nxt
