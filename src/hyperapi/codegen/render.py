"""
Source renderer - turns artifact bundles into Python modules.

Each bundle renders to four modules laid out as a package:

    dto/customer_dto.py
    mapper/customer_mapper.py
    service/customer_service.py
    controller/customer_controller.py

Generated modules import their record type from its home module and the
base classes from ``hyperapi.runtime``.
"""

from __future__ import annotations

import builtins
import types
import typing
from collections import defaultdict
from pathlib import Path
from textwrap import dedent, indent
from typing import Any, get_args, get_origin

from hyperapi.codegen.generator import GeneratorResult
from hyperapi.specs.artifacts import (
    AccessorSpec,
    ArtifactBundle,
    DTOFieldSpec,
    DTOSpec,
    EndpointSpec,
    MapperSpec,
    ServiceOverrideSpec,
)

HEADER = "Generated by hyperapi - DO NOT EDIT."

PACKAGES = ("dto", "mapper", "service", "controller")


def snake_case(name: str) -> str:
    """Convert PascalCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0 and not name[i - 1].isupper():
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def _tuple_literal(items: list[str]) -> str:
    if len(items) == 1:
        return f"({items[0]},)"
    return f"({', '.join(items)})"


# =============================================================================
# Type imports
# =============================================================================


def _collect_types(annotation: Any, into: dict[str, set[str]]) -> None:
    if annotation is None or annotation is type(None) or isinstance(annotation, str):
        return
    origin = get_origin(annotation)
    if origin is not None:
        if isinstance(origin, type) and origin is not types.UnionType:
            _collect_types(origin, into)
        for arg in get_args(annotation):
            if arg is not Ellipsis:
                _collect_types(arg, into)
        return
    if annotation is typing.Any:
        into["typing"].add("Any")
        return
    if isinstance(annotation, type):
        module = annotation.__module__
        if module == "builtins" or getattr(builtins, annotation.__name__, None) is annotation:
            return
        into[module].add(annotation.__name__)


def type_imports(bundle: ArtifactBundle) -> list[str]:
    """``from x import Y`` lines for every non-builtin type the DTO mentions."""
    modules: dict[str, set[str]] = defaultdict(set)
    for field in bundle.spec.fields:
        if field.name in bundle.spec.ignored_fields:
            continue
        _collect_types(field.annotation, modules)
    modules[bundle.spec.module].add(bundle.spec.type_name)
    return [f"from {module} import {', '.join(sorted(names))}" for module, names in sorted(modules.items())]


# =============================================================================
# DTO
# =============================================================================


def _field_line(field: DTOFieldSpec) -> str:
    if field.default_factory is not None:
        return f"{field.name}: {field.type_tag} = Field(default_factory={field.default_factory})"
    annotation = field.type_tag
    if "None" not in annotation.split(" | "):
        annotation = f"{annotation} | None"
    return f"{field.name}: {annotation} = None"


def _value_type(field: DTOFieldSpec) -> str:
    if field.default_factory is None and "None" not in field.type_tag.split(" | "):
        return f"{field.type_tag} | None"
    return field.type_tag


def _accessor(field: DTOFieldSpec, accessor: AccessorSpec) -> str:
    name = field.name
    if accessor.kind == "getter":
        return f"def {accessor.name}(self) -> {_value_type(field)}:\n    return self.{name}\n"
    if accessor.kind == "setter":
        return (
            f"def {accessor.name}(self, value: {_value_type(field)}) -> None:\n"
            f"    self.{name} = value\n"
        )
    if accessor.kind == "adder":
        method = "add" if field.default_factory == "set" else "append"
        return (
            f"def {accessor.name}(self, item: {field.element_type or 'object'}) -> None:\n"
            f"    self.{name}.{method}(item)\n"
        )
    if accessor.kind == "putter":
        return (
            f"def {accessor.name}(self, key: {field.key_type or 'object'}, "
            f"value: {field.value_type or 'object'}) -> None:\n"
            f"    self.{name}[key] = value\n"
        )
    empty = "()" if field.default_factory == "tuple" else None
    if empty is not None:
        return f"def {accessor.name}(self) -> None:\n    self.{name} = {empty}\n"
    return f"def {accessor.name}(self) -> None:\n    self.{name}.clear()\n"


def _value_methods(dto: DTOSpec) -> str:
    own = _tuple_literal([f"self.{f}" for f in dto.equality_fields])
    other = _tuple_literal([f"other.{f}" for f in dto.equality_fields])
    hashed = ", ".join(f"self.{f}" for f in dto.hash_fields)
    shown = _tuple_literal([repr(f) for f in dto.repr_fields])
    return dedent(f"""
        def __eq__(self, other: object) -> bool:
            if self is other:
                return True
            if not isinstance(other, {dto.name}):
                return False
            return {own} == {other}

        def __hash__(self) -> int:
            return value_hash({hashed})

        def __repr__(self) -> str:
            return value_repr("{dto.name}", self, {shown})
    """).strip()


def render_dto(bundle: ArtifactBundle) -> str:
    dto = bundle.dto
    lines = [
        '"""',
        f"{dto.name} transfer object for {dto.record_name}.",
        HEADER,
        '"""',
        "",
        "from pydantic import Field",
        "",
        "from hyperapi.runtime.dto import BaseDTO, value_hash, value_repr",
        *type_imports(bundle),
        "",
        "",
        f"class {dto.name}(BaseDTO):",
    ]
    body: list[str] = [_field_line(f) for f in dto.fields]
    if not body:
        body.append("pass")
    for field in dto.fields:
        for accessor in field.accessors:
            body.append("")
            body.append(_accessor(field, accessor).rstrip())
    if dto.has_value_methods:
        body.append("")
        body.append(_value_methods(dto))
    lines.append(indent("\n".join(body), "    ", lambda line: bool(line.strip())))
    return "\n".join(lines).rstrip() + "\n"


# =============================================================================
# Mapper
# =============================================================================


def _directive_doc(mapper: MapperSpec, method: str) -> str:
    targets = [d.target for d in mapper.method(method).directives if d.ignore]
    if not targets:
        return ""
    return f'"""Leaves {", ".join(targets)} untouched."""\n'


def render_mapper(bundle: ArtifactBundle) -> str:
    mapper = bundle.mapper
    record, dto = mapper.record_name, mapper.dto_name
    snake = snake_case(record)
    ignored = _tuple_literal([repr(n) for n in mapper.ignored_fields]) if mapper.ignored_fields else "()"
    nested_targets = [d.target for d in mapper.method("to_entity").directives]
    nested = _tuple_literal([repr(n) for n in nested_targets]) if nested_targets else "()"
    to_entity_doc = indent(_directive_doc(mapper, "to_entity"), " " * 8)
    to_dto_doc = indent(_directive_doc(mapper, "to_dto"), " " * 8)

    content = dedent(f'''
        """
        {mapper.name}: {record} <-> {dto}.
        {HEADER}
        """

        from hyperapi.runtime.mapper import StructuralMapper
        from {bundle.spec.module} import {record}

        from ..dto.{snake}_dto import {dto}


        class {mapper.name}(StructuralMapper[{dto}, {record}]):
            IGNORED_FIELDS = {ignored}
            IGNORE_NESTED = {nested}

            def __init__(self) -> None:
                super().__init__({dto}, {record}, self.IGNORED_FIELDS, self.IGNORE_NESTED)

            def to_entity(self, dto: {dto}) -> {record}:
        @@TO_ENTITY_DOC@@        return super().to_entity(dto)

            def to_dto(self, entity: {record}) -> {dto}:
        @@TO_DTO_DOC@@        return super().to_dto(entity)
    ''').strip()
    content = content.replace("@@TO_ENTITY_DOC@@", to_entity_doc)
    content = content.replace("@@TO_DTO_DOC@@", to_dto_doc)
    return content + "\n"


# =============================================================================
# Service
# =============================================================================

_OVERRIDE_SIGNATURES = {
    "create": ("dto: {dto}, actor: str | None = None", "dto, actor", "{dto}"),
    "update": ("dto: {dto}, actor: str | None = None", "dto, actor", "{dto}"),
    "patch": ("record_id: Any, document: Any, actor: str | None = None", "record_id, document, actor", "{dto}"),
    "delete": ("record_id: Any", "record_id", "bool"),
}


def _override(override: ServiceOverrideSpec, dto: str) -> str:
    params, args, returns = (s.format(dto=dto) for s in _OVERRIDE_SIGNATURES[override.method])
    call = "self.emit" if override.emit_call == "emitter.emit" else "self.fire_event"
    if override.passes_entity:
        return dedent(f"""
            async def {override.method}(self, {params}) -> {returns}:
                result = await super().{override.method}({args})
                await {call}(EventType.{override.event.value}, self.mapper.to_entity(result))
                return result
        """).strip()
    return dedent(f"""
        async def {override.method}(self, {params}) -> {returns}:
            removed = await super().{override.method}({args})
            if removed:
                await {call}(EventType.{override.event.value}, None)
            return removed
    """).strip()


def render_service(bundle: ArtifactBundle) -> str:
    service = bundle.service
    record, dto = service.record_name, service.dto_name
    snake = snake_case(record)
    emitter_ref = repr(service.emitter) if service.emitter else "None"
    if service.emitter:
        emitter_expr = "emitter or load_emitter(EMITTER_REF, " + record + ")"
    else:
        emitter_expr = "emitter"

    overrides = "\n\n".join(_override(o, dto) for o in service.overrides)
    overrides_block = indent("\n\n" + overrides, "    ", lambda line: bool(line.strip())) if overrides else ""

    content = dedent(f'''
        """
        {service.name}: CRUD over {record}.
        {HEADER}
        """

        from typing import Any

        from hyperapi.runtime.events import ListenerEmitter, load_emitter
        from hyperapi.runtime.repository import RepositoryPort, load_repository
        from hyperapi.runtime.service import BaseEntityService
        from hyperapi.specs.artifacts import EventType
        from {bundle.spec.module} import {record}

        from ..dto.{snake}_dto import {dto}
        from ..mapper.{snake}_mapper import {service.mapper_name}

        REPOSITORY_REF = {service.repository_ref!r}
        EMITTER_REF = {emitter_ref}


        class {service.name}(BaseEntityService[{dto}, {record}]):
            def __init__(
                self,
                repository: RepositoryPort | None = None,
                events: ListenerEmitter | None = None,
                emitter: Any | None = None,
            ) -> None:
                super().__init__(
                    {record},
                    {dto},
                    {service.mapper_name}(),
                    repository or load_repository(REPOSITORY_REF),
                    events=events,
                    emitter={emitter_expr},
                )
    ''').strip()
    return content + overrides_block + "\n"


# =============================================================================
# Controller
# =============================================================================


def _disabled_handler(endpoint: EndpointSpec) -> str:
    decorator = endpoint.verb.value.lower()
    return dedent(f'''
        @router.{decorator}("{endpoint.path}", include_in_schema=False)
        async def {endpoint.name}() -> None:
            raise NotFoundError({endpoint.disabled_message!r})
    ''').strip()


def _handler(
    endpoint: EndpointSpec, dto: str, service: str, max_limit: int | None, has_id: bool
) -> str:
    name = endpoint.name
    dep = f"service: {service} = Depends(get_service)"
    if name == "get_all":
        defaults = {p.name: p.default for p in endpoint.query_params}
        return dedent(f'''
            @router.get("", response_model=list[{dto}])
            async def get_all(
                offset: int = Query({defaults.get("offset", 0)}, ge=0),
                limit: int = Query({defaults.get("limit", 20)}, ge=0),
                {dep},
            ) -> list[{dto}]:
                return await service.find_all(offset, min(limit or {defaults.get("limit", 20)}, {max_limit}))
        ''').strip()
    if name == "get_by_id":
        return dedent(f'''
            @router.get("/{{id}}", response_model={dto})
            async def get_by_id(id: int, {dep}) -> {dto}:
                result = await service.find_by_id(id)
                if result is None:
                    raise NotFoundError(f"{dto} with id {{id}} not found")
                return result
        ''').strip()
    if name == "create":
        return dedent(f'''
            @router.post("", response_model={dto}, status_code={endpoint.status_code})
            async def create(body: {dto}, {dep}) -> {dto}:
                return await service.create(body)
        ''').strip()
    if name == "update":
        return dedent(f'''
            @router.put("/{{id}}", response_model={dto})
            async def update(id: int, body: {dto}, {dep}) -> {dto}:
                {"body.id = id" if has_id else "del id"}
                return await service.update(body)
        ''').strip()
    if name == "patch":
        return dedent(f'''
            @router.patch("/{{id}}", response_model={dto})
            async def patch(id: int, request: Request, {dep}) -> {dto}:
                document = await read_patch_document(request)
                return await service.patch(id, document)
        ''').strip()
    return dedent(f'''
        @router.delete("/{{id}}", status_code={endpoint.status_code})
        async def delete(id: int, {dep}) -> Response:
            await service.delete(id)
            return Response(status_code={endpoint.status_code})
    ''').strip()


def render_controller(bundle: ArtifactBundle) -> str:
    controller = bundle.controller
    record = bundle.spec.type_name
    snake = snake_case(record)
    dto, service = controller.dto_name, controller.service_name
    max_limit = controller.endpoint("get_all").max_limit
    has_id = any(f.name == "id" for f in bundle.dto.fields)

    handlers = []
    for endpoint in controller.endpoints:
        if endpoint.disabled:
            handlers.append(_disabled_handler(endpoint))
        else:
            handlers.append(_handler(endpoint, dto, service, max_limit, has_id))
    body = indent("\n\n".join(handlers), "    ", lambda line: bool(line.strip()))

    content = dedent(f'''
        """
        {controller.name}: REST endpoints under {controller.base_path}.
        {HEADER}
        """

        from collections.abc import Callable

        from fastapi import APIRouter, Depends, Query, Request, Response

        from hyperapi.errors import NotFoundError
        from hyperapi.runtime.controller import read_patch_document

        from ..dto.{snake}_dto import {dto}
        from ..service.{snake}_service import {service}

        BASE_PATH = {controller.base_path!r}
        SCOPE = {controller.scope.value!r}


        def build_router(service_provider: Callable[[], {service}]) -> APIRouter:
            router = APIRouter(prefix=BASE_PATH, tags=[{controller.name!r}])

            def get_service() -> {service}:
                return service_provider()

    ''').strip()
    return content + "\n\n" + body + "\n\n    return router\n"


# =============================================================================
# Bundle
# =============================================================================


def render_bundle(bundle: ArtifactBundle) -> dict[str, str]:
    """Relative module path -> Python source for all four artifacts."""
    snake = snake_case(bundle.spec.type_name)
    return {
        f"dto/{snake}_dto.py": render_dto(bundle),
        f"mapper/{snake}_mapper.py": render_mapper(bundle),
        f"service/{snake}_service.py": render_service(bundle),
        f"controller/{snake}_controller.py": render_controller(bundle),
    }


def write_bundle(
    bundle: ArtifactBundle,
    out_dir: Path | str,
    result: GeneratorResult | None = None,
) -> GeneratorResult:
    """
    Write a bundle's modules under ``out_dir`` (created as a package).

    Returns the result the written paths were recorded on.
    """
    result = result or GeneratorResult()
    root = Path(out_dir)
    for package in ("", *PACKAGES):
        init = root / package / "__init__.py"
        if not init.exists():
            result.add_file(init, f'"""{HEADER}"""\n')
    for relative, source in render_bundle(bundle).items():
        result.add_file(root / relative, source)
    return result
