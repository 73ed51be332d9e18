"""
Entity lifecycle events.

Services publish ``EntityEvent``s after create/update/delete/patch when the
resource enables them. A resource either names a custom ``EntityEmitter`` or
falls back to the ``ListenerEmitter``, which fans events out to registered
callbacks.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from hyperapi.core.imports import import_object
from hyperapi.errors import ConfigurationError
from hyperapi.specs.artifacts import EventType

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass(frozen=True)
class EntityEvent(Generic[E]):
    """A lifecycle event. ``entity`` is None for deletes."""

    type: EventType
    entity: E | None
    resource: str | None = None


@runtime_checkable
class EntityEmitter(Protocol[E]):
    """Anything that can publish a lifecycle event; may return an awaitable."""

    def emit(self, event_type: EventType, entity: E | None) -> Awaitable[None] | None: ...


EventListener = Callable[[EntityEvent[Any]], Any]


class ListenerEmitter:
    """
    Default emitter: delivers events to registered listeners.

    Listener failures are logged and never fail the CRUD operation.
    """

    def __init__(self, resource: str | None = None):
        self.resource = resource
        self._listeners: list[EventListener] = []

    def subscribe(self, listener: EventListener) -> EventListener:
        self._listeners.append(listener)
        return listener

    def for_resource(self, resource: str) -> ListenerEmitter:
        """A view of this emitter that tags events with ``resource``."""
        scoped = ListenerEmitter(resource)
        scoped._listeners = self._listeners
        return scoped

    async def emit(self, event_type: EventType, entity: Any | None) -> None:
        event = EntityEvent(type=event_type, entity=entity, resource=self.resource)
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    "Event listener failed for %s %s: %s", self.resource, event_type.value, e
                )


class TypedEmitter(ABC, Generic[E]):
    """
    Emitter base that only forwards events whose entity matches ``entity_type``.

    Delete events (entity is None) are always forwarded.
    """

    def __init__(self, entity_type: type[E]):
        self.entity_type = entity_type

    def emit(self, event_type: EventType, entity: E | None) -> Awaitable[None] | None:
        if entity is None or isinstance(entity, self.entity_type):
            return self.emit_typed(event_type, entity)
        return None

    @abstractmethod
    def emit_typed(self, event_type: EventType, entity: E | None) -> Awaitable[None] | None: ...


async def publish(emitter: Any, event_type: EventType, entity: Any | None) -> None:
    """Call ``emitter.emit`` and await the result when it is awaitable."""
    result = emitter.emit(event_type, entity)
    if inspect.isawaitable(result):
        await result


def load_emitter(path: str, record_type: type | None = None) -> Any:
    """
    Instantiate an emitter from an import path ``"package.module:ClassName"``.

    ``TypedEmitter`` subclasses receive ``record_type`` as their entity type.

    Raises:
        ConfigurationError: The path cannot be imported or is not an emitter
    """
    target = import_object(path)
    if isinstance(target, type):
        if issubclass(target, TypedEmitter):
            if record_type is None:
                raise ConfigurationError(f"Emitter '{path}' needs the record type")
            return target(record_type)
        target = target()
    if not callable(getattr(target, "emit", None)):
        raise ConfigurationError(f"'{path}' does not provide an emit() method")
    return target
