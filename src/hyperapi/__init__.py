"""
HyperAPI - declarative CRUD REST resources for record types.

Declare a record with ``@resource`` and get a DTO, mapper, service and
FastAPI controller, either generated as source or served by the generic
runtime dispatcher.
"""

from __future__ import annotations

from hyperapi._version import __version__
from hyperapi.core.records import BaseRecord, resource
from hyperapi.errors import (
    BadMergePatchError,
    BadRequestError,
    ConfigurationError,
    ForbiddenError,
    HyperApiError,
    NotFoundError,
    SpecValidationError,
    UnauthorizedError,
)
from hyperapi.specs.resource import HttpMethod, ResourceConfig, Scope

__all__ = [
    "__version__",
    "BaseRecord",
    "resource",
    "ResourceConfig",
    "HttpMethod",
    "Scope",
    "HyperApiError",
    "SpecValidationError",
    "ConfigurationError",
    "NotFoundError",
    "BadRequestError",
    "BadMergePatchError",
    "UnauthorizedError",
    "ForbiddenError",
]
