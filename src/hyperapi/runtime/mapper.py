"""
Record <-> DTO mappers.

``AbstractMapper`` is the contract generated mappers implement.
``StructuralMapper`` implements it by matching field names, honouring the
ignore directives synthesized from ``mapping.ignore_nested``.
"""

from __future__ import annotations

import copy
import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from hyperapi.runtime.repository import unwrap

D = TypeVar("D", bound=BaseModel)
E = TypeVar("E")


class AbstractMapper(ABC, Generic[D, E]):
    """Converts between a record type and its DTO."""

    @abstractmethod
    def to_entity(self, dto: D) -> E: ...

    @abstractmethod
    def to_dto(self, entity: E) -> D: ...

    def to_list(self, entities: Iterable[E]) -> list[D]:
        return [self.to_dto(e) for e in entities]


def _prune(value: Any, parts: list[str]) -> Any:
    """Copy ``value`` with the attribute at dotted ``parts`` cleared."""
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return type(value)(_prune(v, parts) for v in value)
    if isinstance(value, dict):
        return {k: _prune(v, parts) for k, v in value.items()}
    pruned = copy.copy(unwrap(value))
    head, rest = parts[0], parts[1:]
    if rest:
        setattr(pruned, head, _prune(getattr(pruned, head, None), rest))
    else:
        setattr(pruned, head, None)
    return pruned


class StructuralMapper(AbstractMapper[D, E]):
    """
    Name-matching mapper.

    Top-level ignore directives leave the target at its default; dotted
    directives (``customer.address``) copy the nested value with that
    attribute cleared.
    """

    def __init__(
        self,
        dto_model: type[D],
        record_type: type[E],
        ignored_fields: Iterable[str] = (),
        ignore_nested: Iterable[str] = (),
    ):
        self.dto_model = dto_model
        self.record_type = record_type
        self.ignored_fields = frozenset(ignored_fields)
        self._nested: dict[str, list[list[str]]] = {}
        for target in ignore_nested:
            head, _, rest = target.partition(".")
            self._nested.setdefault(head, []).append(rest.split(".") if rest else [])

    def _transfer(self, name: str, value: Any) -> tuple[bool, Any]:
        paths = self._nested.get(name)
        if paths is None:
            return True, value
        if any(not p for p in paths):
            return False, None
        for p in paths:
            value = _prune(value, p)
        return True, value

    def to_dto(self, entity: E) -> D:
        entity = unwrap(entity)
        data: dict[str, Any] = {}
        for name in self.dto_model.model_fields:
            if name in self.ignored_fields or not hasattr(entity, name):
                continue
            keep, value = self._transfer(name, getattr(entity, name))
            if keep:
                data[name] = value
        return self.dto_model.model_validate(data)

    def to_entity(self, dto: D) -> E:
        values: dict[str, Any] = {}
        for name in type(dto).model_fields:
            if name in self.ignored_fields:
                continue
            if getattr(dto, name) is None and name not in dto.model_fields_set:
                continue
            keep, value = self._transfer(name, getattr(dto, name))
            if keep:
                values[name] = value

        if dataclasses.is_dataclass(self.record_type):
            init_names = {f.name for f in dataclasses.fields(self.record_type) if f.init}
            entity = self.record_type(**{k: v for k, v in values.items() if k in init_names})
            for k, v in values.items():
                if k not in init_names:
                    setattr(entity, k, v)
            return entity

        entity = self.record_type()
        for k, v in values.items():
            setattr(entity, k, v)
        return entity
