"""
HyperAPI runtime.

This module provides:
- The entity registry and resource config cache
- The generic dispatcher and merge-patch engine
- Security enforcement and problem-details error handling
- Base classes used by generated and materialized artifacts
- The FastAPI app factory

Example usage:
    >>> from hyperapi.runtime import create_app, run_app
    >>>
    >>> app = create_app(mode="generic")
    >>> run_app(port=8000)
"""

from hyperapi.runtime.app_factory import AppContext, create_app, run_app
from hyperapi.runtime.dispatcher import GenericDispatcher
from hyperapi.runtime.dto import BaseDTO
from hyperapi.runtime.events import (
    EntityEmitter,
    EntityEvent,
    ListenerEmitter,
    TypedEmitter,
    load_emitter,
)
from hyperapi.runtime.field_access import FieldAccessor, ReflectionFieldAccessor
from hyperapi.runtime.mapper import AbstractMapper, StructuralMapper
from hyperapi.runtime.patch import PatchEngine, apply_merge_patch
from hyperapi.runtime.problems import ProblemDetails, register_exception_handlers
from hyperapi.runtime.registry import EntityRegistry, RegistryEntry, ResourceConfigCache
from hyperapi.runtime.repository import InMemoryRepository, LazyReference, RepositoryPort
from hyperapi.runtime.security import (
    Principal,
    SecurityDecision,
    SecurityEnforcer,
    TokenPrincipalResolver,
)
from hyperapi.runtime.service import BaseEntityService

__all__ = [
    # App
    "AppContext",
    "create_app",
    "run_app",
    # Registry
    "EntityRegistry",
    "RegistryEntry",
    "ResourceConfigCache",
    # Dispatch
    "GenericDispatcher",
    "FieldAccessor",
    "ReflectionFieldAccessor",
    "PatchEngine",
    "apply_merge_patch",
    # Persistence
    "RepositoryPort",
    "InMemoryRepository",
    "LazyReference",
    # Security and errors
    "Principal",
    "SecurityDecision",
    "SecurityEnforcer",
    "TokenPrincipalResolver",
    "ProblemDetails",
    "register_exception_handlers",
    # Artifact bases
    "BaseDTO",
    "AbstractMapper",
    "StructuralMapper",
    "BaseEntityService",
    # Events
    "EntityEvent",
    "EntityEmitter",
    "ListenerEmitter",
    "TypedEmitter",
    "load_emitter",
]
