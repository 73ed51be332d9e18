"""
HyperAPI specification types.

This module exports the resource configuration schema, the normalized
resource spec, field descriptors and the synthesized artifact types.
"""

from hyperapi.specs.artifacts import (
    AccessorSpec,
    ArtifactBundle,
    ControllerSpec,
    DTOFieldSpec,
    DTOSpec,
    EndpointSpec,
    EventType,
    MapperMethodSpec,
    MapperSpec,
    MappingDirective,
    QueryParamSpec,
    ServiceOverrideSpec,
    ServiceSpec,
)
from hyperapi.specs.fields import FieldDescriptor
from hyperapi.specs.resource import (
    CRUD_VERBS,
    DEFAULT_EMITTER,
    CacheConfig,
    EventsConfig,
    HttpMethod,
    MappingConfig,
    PageableConfig,
    PaginationSpec,
    ResourceConfig,
    ResourceSpec,
    Scope,
    SecurityConfig,
)

__all__ = [
    # Configuration
    "ResourceConfig",
    "MappingConfig",
    "PageableConfig",
    "EventsConfig",
    "CacheConfig",
    "SecurityConfig",
    "HttpMethod",
    "Scope",
    "CRUD_VERBS",
    "DEFAULT_EMITTER",
    # Normalized spec
    "ResourceSpec",
    "PaginationSpec",
    "FieldDescriptor",
    # Artifacts
    "AccessorSpec",
    "ArtifactBundle",
    "ControllerSpec",
    "DTOFieldSpec",
    "DTOSpec",
    "EndpointSpec",
    "EventType",
    "MapperMethodSpec",
    "MapperSpec",
    "MappingDirective",
    "QueryParamSpec",
    "ServiceOverrideSpec",
    "ServiceSpec",
]
