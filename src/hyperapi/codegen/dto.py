"""
DTO synthesis.

Derives the transfer-object shape from a resource spec: one field per
non-ignored record field, accessor contracts per field, and the field tuple
shared by the generated equality, hash and repr methods.
"""

from __future__ import annotations

from hyperapi.specs.artifacts import AccessorSpec, DTOFieldSpec, DTOSpec
from hyperapi.specs.fields import FieldDescriptor
from hyperapi.specs.resource import ResourceSpec


def getter_name(field: FieldDescriptor) -> str:
    if field.is_boolean and not field.name.startswith("is_"):
        return f"is_{field.name}"
    return f"get_{field.name}"


def build_accessors(field: FieldDescriptor) -> tuple[AccessorSpec, ...]:
    accessors = [
        AccessorSpec(kind="getter", name=getter_name(field), field=field.name),
        AccessorSpec(kind="setter", name=f"set_{field.name}", field=field.name),
    ]
    if field.collection_kind == "dict":
        accessors.append(
            AccessorSpec(kind="putter", name=f"put_{field.name}_entry", field=field.name)
        )
    elif field.collection_kind in ("list", "set"):
        accessors.append(
            AccessorSpec(kind="adder", name=f"add_{field.name}_item", field=field.name)
        )
    if field.is_collection:
        accessors.append(AccessorSpec(kind="clearer", name=f"clear_{field.name}", field=field.name))
    return tuple(accessors)


def build_dto_field(field: FieldDescriptor) -> DTOFieldSpec:
    return DTOFieldSpec(
        name=field.name,
        type_tag=field.type_tag,
        default_factory=field.container_factory,
        element_type=field.element_type,
        key_type=field.key_type,
        value_type=field.value_type,
        accessors=build_accessors(field),
    )


def build_dto_spec(spec: ResourceSpec) -> DTOSpec:
    """
    Build the DTO artifact.

    ``spec.fields`` already excludes ignored fields. The equality, hash and
    repr tuples are one and the same object so they can never drift apart.
    """
    fields = tuple(build_dto_field(f) for f in spec.fields if f.name not in spec.ignored_fields)
    value_fields = tuple(f.name for f in fields)
    return DTOSpec(
        name=spec.dto_name,
        record_name=spec.type_name,
        record_module=spec.module,
        fields=fields,
        equality_fields=value_fields,
        hash_fields=value_fields,
        repr_fields=value_fields,
    )
