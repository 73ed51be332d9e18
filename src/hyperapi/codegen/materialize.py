"""
Materializer - turns artifact bundles into live classes.

The counterpart of the source renderer for hosts that do not want files on
disk: the DTO becomes a pydantic model built with ``create_model``, the
mapper a ``StructuralMapper``, the service a ``BaseEntityService`` subclass
carrying the event overrides, and the controller a FastAPI router.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter
from pydantic import Field, create_model

from hyperapi.core.field_catalog import strip_optional
from hyperapi.logging import get_codegen_logger
from hyperapi.runtime.controller import build_resource_router
from hyperapi.runtime.dto import BaseDTO, value_hash, value_repr
from hyperapi.runtime.events import ListenerEmitter, load_emitter
from hyperapi.runtime.mapper import StructuralMapper
from hyperapi.runtime.repository import RepositoryPort, load_repository
from hyperapi.runtime.service import BaseEntityService
from hyperapi.specs.artifacts import (
    AccessorSpec,
    ArtifactBundle,
    DTOSpec,
    ServiceOverrideSpec,
    ServiceSpec,
)
from hyperapi.specs.fields import FieldDescriptor
from hyperapi.specs.resource import Scope

logger = get_codegen_logger()

_FACTORIES: dict[str, Callable[[], Any]] = {
    "list": list,
    "set": set,
    "tuple": tuple,
    "dict": dict,
}


@dataclass
class MaterializedResource:
    """Live artifacts for one resource."""

    bundle: ArtifactBundle
    dto_model: type[BaseDTO]
    mapper: StructuralMapper[Any, Any]
    service_class: type[BaseEntityService[Any, Any]]
    service_provider: Callable[[], BaseEntityService[Any, Any]]
    router: APIRouter

    @property
    def resource_name(self) -> str:
        return self.bundle.spec.resource_name


# =============================================================================
# DTO
# =============================================================================


def _accessor(accessor: AccessorSpec, factory: str | None) -> Callable[..., Any]:
    name = accessor.field

    if accessor.kind == "getter":

        def method(self: Any) -> Any:
            return getattr(self, name)

    elif accessor.kind == "setter":

        def method(self: Any, value: Any) -> None:
            setattr(self, name, value)

    elif accessor.kind == "adder":

        def method(self: Any, item: Any) -> None:
            container = getattr(self, name)
            if factory == "set":
                container.add(item)
            else:
                container.append(item)

    elif accessor.kind == "putter":

        def method(self: Any, key: Any, value: Any) -> None:
            getattr(self, name)[key] = value

    else:

        def method(self: Any) -> None:
            if factory == "tuple":
                setattr(self, name, ())
            else:
                getattr(self, name).clear()

    method.__name__ = accessor.name
    return method


def _value_methods(dto: DTOSpec, owner: Callable[[], type]) -> dict[str, Any]:
    fields = dto.equality_fields

    def __eq__(self: Any, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, owner()):
            return False
        return tuple(getattr(self, f) for f in fields) == tuple(getattr(other, f) for f in fields)

    def __hash__(self: Any) -> int:
        return value_hash(*(getattr(self, f) for f in dto.hash_fields))

    def __repr__(self: Any) -> str:
        return value_repr(dto.name, self, dto.repr_fields)

    return {"__eq__": __eq__, "__hash__": __hash__, "__repr__": __repr__}


def _field_definition(descriptor: FieldDescriptor) -> tuple[Any, Any]:
    annotation = descriptor.annotation
    if annotation is None or isinstance(annotation, str):
        annotation = Any
    factory = _FACTORIES.get(descriptor.container_factory or "")
    if factory is not None:
        return annotation, Field(default_factory=factory)
    return strip_optional(annotation) | None, None


def build_dto_model(bundle: ArtifactBundle) -> type[BaseDTO]:
    """Create the DTO class described by ``bundle.dto``."""
    dto = bundle.dto
    descriptors = {f.name: f for f in bundle.spec.fields}
    namespace: dict[str, Any] = {"__module__": bundle.spec.module}
    for field in dto.fields:
        factory = descriptors[field.name].container_factory
        for accessor in field.accessors:
            namespace[accessor.name] = _accessor(accessor, factory)

    model: type[BaseDTO] | None = None
    if dto.has_value_methods:
        namespace.update(_value_methods(dto, lambda: model or BaseDTO))
    base = type(BaseDTO)(f"{dto.name}Base", (BaseDTO,), namespace)

    definitions = {f.name: _field_definition(descriptors[f.name]) for f in dto.fields}
    model = create_model(dto.name, __base__=base, __module__=bundle.spec.module, **definitions)
    return model


# =============================================================================
# Service
# =============================================================================


def _override(override: ServiceOverrideSpec) -> Callable[..., Any]:
    base = getattr(BaseEntityService, override.method)

    async def method(self: BaseEntityService[Any, Any], *args: Any, **kwargs: Any) -> Any:
        result = await base(self, *args, **kwargs)
        publish = self.emit if override.emit_call == "emitter.emit" else self.fire_event
        if override.passes_entity:
            await publish(override.event, self.mapper.to_entity(result))
        elif result:
            await publish(override.event, None)
        return result

    method.__name__ = override.method
    return method


def build_service_class(service: ServiceSpec) -> type[BaseEntityService[Any, Any]]:
    """A ``BaseEntityService`` subclass with one override per enabled event."""
    namespace: dict[str, Any] = {o.method: _override(o) for o in service.overrides}
    return type(service.name, (BaseEntityService,), namespace)


# =============================================================================
# Resource
# =============================================================================


def materialize(
    bundle: ArtifactBundle,
    record_type: type,
    repository: RepositoryPort | None = None,
    events: ListenerEmitter | None = None,
    emitter: Any | None = None,
    dependencies: Sequence[Any] | None = None,
) -> MaterializedResource:
    """
    Build live artifacts for one bundle.

    Args:
        bundle: Synthesized artifacts
        record_type: The record class the bundle was built from
        repository: Persistence port; defaults to the service's repository reference
        events: Default event path shared by services
        emitter: Custom emitter; defaults to the one the resource declares
        dependencies: Extra route dependencies
    """
    dto_model = build_dto_model(bundle)
    mapper: StructuralMapper[Any, Any] = StructuralMapper(
        dto_model,
        record_type,
        bundle.mapper.ignored_fields,
        [d.target for d in bundle.mapper.method("to_entity").directives],
    )
    service_class = build_service_class(bundle.service)
    repository = repository or load_repository(bundle.service.repository_ref)
    scoped_events = (events or ListenerEmitter()).for_resource(bundle.spec.resource_name)
    if emitter is None and bundle.service.emitter:
        emitter = load_emitter(bundle.service.emitter, record_type)

    def new_service() -> BaseEntityService[Any, Any]:
        return service_class(
            record_type,
            dto_model,
            mapper,
            repository,
            events=scoped_events,
            emitter=emitter,
        )

    if bundle.controller.scope == Scope.APPLICATION:
        shared = new_service()

        def provider() -> BaseEntityService[Any, Any]:
            return shared

    else:
        provider = new_service

    router = build_resource_router(bundle.controller, dto_model, provider, dependencies)
    logger.debug(
        "Materialized %s at %s (scope=%s)",
        bundle.spec.type_name,
        bundle.controller.base_path,
        bundle.controller.scope.value,
    )
    return MaterializedResource(
        bundle=bundle,
        dto_model=dto_model,
        mapper=mapper,
        service_class=service_class,
        service_provider=provider,
        router=router,
    )
