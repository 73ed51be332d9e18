"""
Mapper synthesis.

Every ``ignore_nested`` target becomes an ignore directive on both
conversion directions so a structural mapper never traverses it.
"""

from __future__ import annotations

from hyperapi.specs.artifacts import MapperMethodSpec, MapperSpec, MappingDirective
from hyperapi.specs.resource import ResourceSpec


def mapper_name(spec: ResourceSpec) -> str:
    return f"{spec.type_name}Mapper"


def build_mapper_spec(spec: ResourceSpec) -> MapperSpec:
    directives = tuple(MappingDirective(target=n) for n in sorted(spec.ignored_nested_fields))
    record, dto = spec.type_name, spec.dto_name
    return MapperSpec(
        name=mapper_name(spec),
        dto_name=dto,
        record_name=record,
        ignored_fields=tuple(sorted(spec.ignored_fields)),
        methods=(
            MapperMethodSpec(
                name="to_entity",
                parameter="dto",
                parameter_type=dto,
                returns=record,
                directives=directives,
            ),
            MapperMethodSpec(
                name="to_dto",
                parameter="entity",
                parameter_type=record,
                returns=dto,
                directives=directives,
            ),
            MapperMethodSpec(
                name="to_list",
                parameter="entities",
                parameter_type=f"list[{record}]",
                returns=f"list[{dto}]",
                abstract=False,
            ),
        ),
    )
