"""
Base CRUD service for generated resources.

Generated services subclass ``BaseEntityService`` and override the CRUD
methods whose lifecycle events are enabled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from hyperapi.core.field_catalog import FieldCatalog
from hyperapi.core.records import IMMUTABLE_AUDIT_FIELDS
from hyperapi.errors import BadMergePatchError, BadRequestError, NotFoundError
from hyperapi.runtime.events import ListenerEmitter, publish
from hyperapi.runtime.mapper import AbstractMapper
from hyperapi.runtime.patch import merge_patched
from hyperapi.runtime.repository import RepositoryPort
from hyperapi.specs.artifacts import EventType

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=BaseModel)
E = TypeVar("E")


class BaseEntityService(Generic[D, E]):
    """
    CRUD over one record type, exchanging DTOs.

    Args:
        record_type: The record class
        dto_model: The DTO class
        mapper: Record <-> DTO mapper
        repository: Persistence port
        events: Emitter used by ``fire_event`` (default event path)
        emitter: Custom emitter for resources that declare one
        immutable_fields: Fields a patch may never change, beyond the audit fields
    """

    def __init__(
        self,
        record_type: type[E],
        dto_model: type[D],
        mapper: AbstractMapper[D, E],
        repository: RepositoryPort,
        events: ListenerEmitter | None = None,
        emitter: Any | None = None,
        immutable_fields: Iterable[str] = (),
    ):
        self.record_type = record_type
        self.dto_model = dto_model
        self.mapper = mapper
        self.repository = repository
        self.events = events or ListenerEmitter(record_type.__name__)
        self.emitter = emitter or self.events
        self.immutable_fields = tuple(immutable_fields)
        # Record fields the DTO does not carry; updates keep their stored values.
        self.hidden_fields = tuple(
            n for n in FieldCatalog(record_type).names if n not in dto_model.model_fields
        )

    async def find_all(self, offset: int = 0, limit: int = 20) -> list[D]:
        async with self.repository.transaction():
            rows = await self.repository.page(self.record_type, max(offset, 0), limit)
            return self.mapper.to_list(rows)

    async def find_by_id(self, record_id: Any) -> D | None:
        async with self.repository.transaction():
            entity = await self.repository.find(self.record_type, record_id)
            return self.mapper.to_dto(entity) if entity is not None else None

    async def create(self, dto: D, actor: str | None = None) -> D:
        async with self.repository.transaction():
            entity = self.mapper.to_entity(dto)
            entity = await self.repository.persist(entity, actor)
            return self.mapper.to_dto(entity)

    async def update(self, dto: D, actor: str | None = None) -> D:
        """
        Raises:
            BadRequestError: The DTO carries no id
            NotFoundError: No record with that id
        """
        record_id = getattr(dto, "id", None)
        if record_id is None:
            raise BadRequestError(f"Update of {self.record_type.__name__} requires an id")
        async with self.repository.transaction():
            existing = await self.repository.find(self.record_type, record_id)
            if existing is None:
                raise NotFoundError(f"{self.record_type.__name__} with id {record_id} not found")
            entity = self.mapper.to_entity(dto)
            for name in (*IMMUTABLE_AUDIT_FIELDS, *self.hidden_fields):
                if hasattr(existing, name):
                    setattr(entity, name, getattr(existing, name))
            entity = await self.repository.merge(entity, actor)
            return self.mapper.to_dto(entity)

    async def delete(self, record_id: Any) -> bool:
        """Deleting an absent id is a no-op; returns whether a record was removed."""
        async with self.repository.transaction():
            return await self.repository.delete(self.record_type, record_id)

    async def patch(self, record_id: Any, document: Any, actor: str | None = None) -> D:
        """
        Apply a JSON merge patch to the record's DTO.

        ``created_on`` and ``created_by`` always keep their stored values.

        Raises:
            NotFoundError: No record with ``record_id``
            BadMergePatchError: Invalid document or resulting DTO
        """
        async with self.repository.transaction():
            current = await self.find_by_id(record_id)
            if current is None:
                raise NotFoundError(f"{self.record_type.__name__} with id {record_id} not found")
            merged = merge_patched(
                current.model_dump(mode="json"),
                document,
                record_id,
                allowed_fields=self.dto_model.model_fields,
                immutable_fields=self.immutable_fields,
            )
            try:
                patched = self.dto_model.model_validate(merged)
            except ValidationError as e:
                raise BadMergePatchError(f"Patched document is invalid: {e}") from e
            return await self.update(patched, actor)

    async def fire_event(self, event_type: EventType, entity: Any | None) -> None:
        """Publish through the default event path."""
        await publish(self.events, event_type, entity)

    async def emit(self, event_type: EventType, entity: Any | None) -> None:
        """Publish through the configured emitter."""
        await publish(self.emitter, event_type, entity)
