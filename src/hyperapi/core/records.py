"""
Base record type and the resource declaration marker.

A record type becomes an API resource when it is a dataclass extending
``BaseRecord`` (the persistable marker) and is decorated with ``@resource``
(the declaration marker):

    @resource(path="/api/customers", pageable={"limit": 20, "max_limit": 100})
    @dataclass
    class Customer(BaseRecord):
        name: str = ""
        active: bool = True
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from hyperapi.specs.resource import ResourceConfig

RESOURCE_ATTR = "__hyperapi_resource__"

AUDIT_FIELDS: tuple[str, ...] = ("created_by", "updated_by", "created_on", "updated_on")
IMMUTABLE_AUDIT_FIELDS: tuple[str, ...] = ("created_on", "created_by")

R = TypeVar("R", bound=type)


def _utcnow() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


@dataclass(kw_only=True)
class BaseRecord:
    """
    Persistable base record with identity and audit fields.

    The repository port calls ``pre_persist`` before the first write and
    ``pre_update`` before every later write.
    """

    id: int | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None

    def pre_persist(self, actor: str | None = None) -> None:
        now = _utcnow()
        self.created_on = now
        self.updated_on = now
        self.created_by = actor
        self.updated_by = actor

    def pre_update(self, actor: str | None = None) -> None:
        self.updated_on = _utcnow()
        self.updated_by = actor


def is_persistable(cls: Any) -> bool:
    """Check whether ``cls`` is a concrete persistable record type."""
    return (
        isinstance(cls, type)
        and cls is not BaseRecord
        and issubclass(cls, BaseRecord)
        and dataclasses.is_dataclass(cls)
    )


def resource(
    config: ResourceConfig | dict[str, Any] | None = None, **options: Any
) -> Callable[[R], R]:
    """
    Declare a record type as an API resource.

    Accepts a ``ResourceConfig``, a plain mapping, or keyword options using
    the same keys (``path``, ``dto``, ``mapping``, ``pageable``, ``events``,
    ``cache``, ``security``, ``disabled_for``, ``scope``,
    ``repository_package``).
    """
    if isinstance(config, ResourceConfig):
        resolved = (
            ResourceConfig.model_validate({**config.model_dump(), **options})
            if options
            else config
        )
    else:
        resolved = ResourceConfig.model_validate({**(config or {}), **options})

    def decorate(cls: R) -> R:
        setattr(cls, RESOURCE_ATTR, resolved)
        return cls

    return decorate


def resource_config_of(cls: type) -> ResourceConfig | None:
    """Return the declaration made directly on ``cls`` (not inherited)."""
    config = cls.__dict__.get(RESOURCE_ATTR)
    return config if isinstance(config, ResourceConfig) else None


def is_resource(cls: Any) -> bool:
    return isinstance(cls, type) and resource_config_of(cls) is not None
