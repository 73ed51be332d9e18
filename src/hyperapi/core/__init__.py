"""
Core resource model: base record, field catalog and spec builder.
"""

from hyperapi.core.field_catalog import FieldCatalog, navigable_type, resolve_collection, type_tag
from hyperapi.core.records import (
    AUDIT_FIELDS,
    IMMUTABLE_AUDIT_FIELDS,
    BaseRecord,
    is_persistable,
    is_resource,
    resource,
    resource_config_of,
)
from hyperapi.core.spec_builder import (
    build_resource_spec,
    default_base_path,
    sanitize_dto_name,
)

__all__ = [
    "AUDIT_FIELDS",
    "IMMUTABLE_AUDIT_FIELDS",
    "BaseRecord",
    "FieldCatalog",
    "build_resource_spec",
    "default_base_path",
    "is_persistable",
    "is_resource",
    "navigable_type",
    "resolve_collection",
    "resource",
    "resource_config_of",
    "sanitize_dto_name",
    "type_tag",
]
