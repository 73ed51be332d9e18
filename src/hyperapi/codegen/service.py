"""
Service synthesis.

Each enabled event flag yields an override that runs the base operation and
then emits the matching lifecycle event, through the configured emitter when
one is declared, else through ``fire_event``.
"""

from __future__ import annotations

from hyperapi.codegen.mapper import mapper_name
from hyperapi.specs.artifacts import EmitCall, EventType, ServiceOverrideSpec, ServiceSpec
from hyperapi.specs.resource import ResourceSpec


def service_name(spec: ResourceSpec) -> str:
    return f"{spec.type_name}Service"


def repository_ref(spec: ResourceSpec) -> str:
    """Import path of the repository the generated service is wired to."""
    package = spec.module.rpartition(".")[0] or spec.module
    return f"{package}.{spec.repository_package}:{spec.type_name}Repository"


def build_service_spec(spec: ResourceSpec) -> ServiceSpec:
    events = spec.events
    emit_call: EmitCall = "emitter.emit" if events.has_custom_emitter else "fire_event"
    flags = (
        ("create", events.on_create, EventType.CREATE),
        ("update", events.on_update, EventType.UPDATE),
        ("delete", events.on_delete, EventType.DELETE),
        ("patch", events.on_patch, EventType.PATCH),
    )
    overrides = tuple(
        ServiceOverrideSpec(
            method=method,
            event=event,
            emit_call=emit_call,
            passes_entity=method != "delete",
        )
        for method, enabled, event in flags
        if enabled
    )
    return ServiceSpec(
        name=service_name(spec),
        dto_name=spec.dto_name,
        record_name=spec.type_name,
        mapper_name=mapper_name(spec),
        repository_ref=repository_ref(spec),
        overrides=overrides,
        emitter=events.emitter if events.has_custom_emitter else None,
    )
