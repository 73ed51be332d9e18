"""
Generic CRUD dispatcher over arbitrary registered record types.

Works on plain maps through a ``FieldAccessor`` so one router can serve
every resource in the registry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hyperapi.core.field_catalog import FieldCatalog
from hyperapi.core.records import IMMUTABLE_AUDIT_FIELDS, resource_config_of
from hyperapi.errors import BadRequestError, NotFoundError
from hyperapi.runtime.events import ListenerEmitter, publish
from hyperapi.runtime.field_access import (
    FieldAccessor,
    ReflectionFieldAccessor,
    relation_fields,
)
from hyperapi.runtime.repository import RepositoryPort
from hyperapi.specs.artifacts import EventType

if TYPE_CHECKING:
    from hyperapi.runtime.registry import EntityRegistry

logger = logging.getLogger(__name__)


class GenericDispatcher:
    """
    CRUD operations keyed by record type.

    Args:
        repository: Persistence port; every operation runs in one transaction
        accessor: Map <-> record conversion; defaults to reflection
        registry: Source of resource specs (ignored fields, event flags)
        events: Emitter notified when a resource enables lifecycle events
    """

    def __init__(
        self,
        repository: RepositoryPort,
        accessor: FieldAccessor | None = None,
        registry: EntityRegistry | None = None,
        events: ListenerEmitter | None = None,
    ):
        self.repository = repository
        self.accessor = accessor or ReflectionFieldAccessor()
        self.registry = registry
        self.events = events

    # -------------------------------------------------------------------------
    # Spec lookups
    # -------------------------------------------------------------------------

    def ignored_fields(self, record_type: type) -> frozenset[str]:
        if self.registry is not None and self.registry.contains(record_type):
            return self.registry.spec_for(record_type).ignored_fields
        config = resource_config_of(record_type)
        return frozenset(config.mapping.ignore) if config else frozenset()

    def exposed_fields(self, record_type: type) -> tuple[str, ...]:
        selected = FieldCatalog(record_type).select(self.ignored_fields(record_type))
        return tuple(f.name for f in selected)

    async def _emit(self, record_type: type, event: EventType, entity: Any | None) -> None:
        if self.events is None:
            return
        config = resource_config_of(record_type)
        if config is None:
            return
        enabled = {
            EventType.CREATE: config.events.on_create,
            EventType.UPDATE: config.events.on_update,
            EventType.DELETE: config.events.on_delete,
            EventType.PATCH: config.events.on_patch,
        }[event]
        if enabled:
            await publish(self.events.for_resource(record_type.__name__), event, entity)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def find_all(
        self, record_type: type, offset: int = 0, limit: int = 0
    ) -> list[dict[str, Any]]:
        ignored = self.ignored_fields(record_type)
        async with self.repository.transaction():
            rows = await self.repository.page(
                record_type,
                offset if offset > 0 else 0,
                limit if limit > 0 else None,
            )
            return [self.accessor.to_map(row, ignored) for row in rows]

    async def find_by_id(self, record_type: type, record_id: Any) -> dict[str, Any] | None:
        async with self.repository.transaction():
            record = await self.repository.find(record_type, record_id)
            if record is None:
                return None
            return self.accessor.to_map(record, self.ignored_fields(record_type))

    async def create(
        self, record_type: type, data: Mapping[str, Any], actor: str | None = None
    ) -> dict[str, Any]:
        ignored = self.ignored_fields(record_type)
        async with self.repository.transaction():
            record = self.accessor.to_instance(record_type, data, ignored)
            record = await self.repository.persist(record, actor)
            logger.debug("Created %s#%s", record_type.__name__, record.id)
            await self._emit(record_type, EventType.CREATE, record)
            return self.accessor.to_map(record, ignored)

    async def update(
        self,
        record_type: type,
        data: Mapping[str, Any],
        actor: str | None = None,
        event: EventType = EventType.UPDATE,
    ) -> dict[str, Any]:
        """
        Replace a record with ``data``; ``data["id"]`` selects the record.

        Relations (reduced to ``<field>_id`` in maps) are carried over from the
        stored record, as are ``created_on`` and ``created_by``.

        Raises:
            BadRequestError: ``data`` has no id
            NotFoundError: No record with that id
        """
        if data.get("id") is None:
            raise BadRequestError(f"Update of {record_type.__name__} requires an id")
        ignored = self.ignored_fields(record_type)
        async with self.repository.transaction():
            record = self.accessor.to_instance(record_type, data, ignored)
            existing = await self.repository.find(record_type, record.id)
            if existing is None:
                raise NotFoundError(f"{record_type.__name__} with id {record.id} not found")
            for name in (*relation_fields(record_type), *ignored, *IMMUTABLE_AUDIT_FIELDS):
                if hasattr(existing, name):
                    setattr(record, name, getattr(existing, name))
            record = await self.repository.merge(record, actor)
            await self._emit(record_type, event, record)
            return self.accessor.to_map(record, ignored)

    async def delete(self, record_type: type, record_id: Any) -> None:
        """Delete a record; deleting an absent id is a no-op."""
        async with self.repository.transaction():
            removed = await self.repository.delete(record_type, record_id)
            if removed:
                await self._emit(record_type, EventType.DELETE, None)
            else:
                logger.debug("Delete of missing %s#%s ignored", record_type.__name__, record_id)
