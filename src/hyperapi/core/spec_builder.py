"""
Resource spec builder - the single normalization point for resource declarations.

Merges a record type's field catalog with its ``ResourceConfig`` into an
immutable ``ResourceSpec``. How the configuration was authored (decorator,
TOML table, code) does not matter here.
"""

from __future__ import annotations

import logging
import re

from hyperapi.core.field_catalog import FieldCatalog
from hyperapi.core.records import BaseRecord, resource_config_of
from hyperapi.errors import InheritanceError
from hyperapi.specs.resource import (
    PaginationSpec,
    ResourceConfig,
    ResourceSpec,
)

logger = logging.getLogger(__name__)

_DTO_SUFFIX = re.compile(r"_?dto$", re.IGNORECASE)


def sanitize_dto_name(type_name: str, raw_dto: str | None) -> str:
    """
    Derive the DTO class name.

    Examples:
        >>> sanitize_dto_name("Customer", "")
        'CustomerDTO'
        >>> sanitize_dto_name("Customer", "CustomerView_dto")
        'CustomerViewDTO'
    """
    if raw_dto is None or not raw_dto.strip():
        return f"{type_name}DTO"
    cleaned = _DTO_SUFFIX.sub("", raw_dto.strip()).strip()
    return f"{cleaned or type_name}DTO"


def default_base_path(type_name: str) -> str:
    return f"/api/{type_name.lower()}"


def normalize_path(path: str, type_name: str) -> str:
    if not path or not path.strip():
        return default_base_path(type_name)
    path = "/" + path.strip().strip("/")
    return path


def check_inheritance(record_type: type) -> None:
    """
    Raises:
        InheritanceError: ``record_type`` does not extend ``BaseRecord``.
    """
    if not isinstance(record_type, type) or not issubclass(record_type, BaseRecord):
        name = getattr(record_type, "__name__", repr(record_type))
        raise InheritanceError(
            f"Class {name} must extend {BaseRecord.__module__}.BaseRecord to be a resource"
        )


def build_resource_spec(
    record_type: type,
    config: ResourceConfig | None = None,
) -> ResourceSpec:
    """
    Build the normalized spec for one record type.

    Args:
        record_type: The record class
        config: Explicit configuration; defaults to the ``@resource`` declaration,
            then to an all-defaults configuration

    Raises:
        InheritanceError: The type does not extend ``BaseRecord``
        MappingPathError: A mapping ignore path does not resolve
    """
    check_inheritance(record_type)
    if config is None:
        config = resource_config_of(record_type) or ResourceConfig()

    type_name = record_type.__name__
    catalog = FieldCatalog(record_type)
    for path in (*config.mapping.ignore, *config.mapping.ignore_nested):
        catalog.validate_path(path)

    ignored = frozenset(config.mapping.ignore)
    dto_name = sanitize_dto_name(type_name, config.dto)
    # dto_name is never blank, so builder-made specs always generate; the flag
    # stays meaningful for specs assembled elsewhere.
    should_generate = bool(dto_name.strip()) or bool(ignored)
    if not should_generate:
        logger.info("Nothing to customize for %s; generation will be skipped", type_name)

    return ResourceSpec(
        resource_name=type_name,
        type_name=type_name,
        module=record_type.__module__,
        base_path=normalize_path(config.path, type_name),
        dto_name=dto_name,
        ignored_fields=ignored,
        ignored_nested_fields=frozenset(config.mapping.ignore_nested),
        pagination=PaginationSpec(
            default_limit=config.pageable.limit,
            max_limit=config.pageable.max_limit,
        ),
        security=config.security,
        events=config.events,
        cache=config.cache,
        disabled_verbs=frozenset(config.disabled_for),
        repository_package=config.repository_package,
        scope=config.scope,
        should_generate=should_generate,
        fields=catalog.select(ignored),
    )
