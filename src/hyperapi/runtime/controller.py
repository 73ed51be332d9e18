"""
FastAPI router for a synthesized controller.

Turns a ``ControllerSpec`` into live routes backed by a ``BaseEntityService``.
Disabled endpoints keep their route and always answer 404.
"""

# No ``from __future__ import annotations`` here: FastAPI reads the handler
# annotations at definition time and they reference local DTO classes.

import json
from collections.abc import Callable, Sequence
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from hyperapi.errors import BadMergePatchError, NotFoundError
from hyperapi.runtime.patch import MERGE_PATCH_MEDIA_TYPE
from hyperapi.runtime.service import BaseEntityService
from hyperapi.specs.artifacts import ControllerSpec, EndpointSpec

PATCH_MEDIA_TYPES = (MERGE_PATCH_MEDIA_TYPE, "application/json")


def _add_disabled_route(router: APIRouter, spec: ControllerSpec, endpoint: EndpointSpec) -> None:
    message = endpoint.disabled_message or ""

    async def disabled() -> None:
        raise NotFoundError(message)

    router.add_api_route(
        endpoint.path,
        disabled,
        methods=[endpoint.verb.value],
        name=f"{spec.name}.{endpoint.name}",
        include_in_schema=False,
    )


async def read_patch_document(request: Request) -> Any:
    """
    Parse a merge-patch request body.

    Raises:
        BadMergePatchError: Unsupported content type or malformed JSON
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type and content_type not in PATCH_MEDIA_TYPES:
        raise BadMergePatchError(f"Unsupported content type for merge patch: {content_type}")
    body = await request.body()
    try:
        return json.loads(body or b"null")
    except json.JSONDecodeError as e:
        raise BadMergePatchError(f"Malformed merge patch document: {e}") from e


def build_resource_router(
    spec: ControllerSpec,
    dto_model: type[BaseModel],
    service_provider: Callable[[], BaseEntityService],
    dependencies: Sequence[Any] | None = None,
) -> APIRouter:
    """
    Build the router for one resource.

    Args:
        spec: Controller artifact
        dto_model: DTO class used for request and response bodies
        service_provider: Returns the service for a request (shared or fresh,
            depending on scope)
        dependencies: Extra route dependencies (e.g. a security gate)
    """
    router = APIRouter(
        prefix=spec.base_path,
        tags=[spec.name],
        dependencies=list(dependencies or []),
    )

    def get_service() -> BaseEntityService:
        return service_provider()

    Service = Annotated[BaseEntityService, Depends(get_service)]

    for endpoint in spec.endpoints:
        if endpoint.disabled:
            _add_disabled_route(router, spec, endpoint)

    get_all = spec.endpoint("get_all")
    defaults = {p.name: p.default for p in get_all.query_params}
    max_limit = get_all.max_limit
    has_id = "id" in dto_model.model_fields

    def route_name(endpoint: str) -> str:
        return f"{spec.name}.{endpoint}"

    if not get_all.disabled:

        @router.get("", response_model=list[dto_model], name=route_name("get_all"))
        async def list_resources(
            service: Service,
            offset: int = Query(default=defaults.get("offset", 0), ge=0),
            limit: int = Query(default=defaults.get("limit", 20), ge=0),
        ) -> Any:
            limit = limit or defaults.get("limit", 20)
            if max_limit is not None:
                limit = min(limit, max_limit)
            return await service.find_all(offset, limit)

    if not spec.endpoint("get_by_id").disabled:

        @router.get("/{id}", response_model=dto_model, name=route_name("get_by_id"))
        async def get_resource(id: int, service: Service) -> Any:
            found = await service.find_by_id(id)
            if found is None:
                raise NotFoundError(f"{spec.dto_name} with id {id} not found")
            return found

    create = spec.endpoint("create")
    if not create.disabled:

        @router.post(
            "",
            response_model=dto_model,
            status_code=create.status_code,
            name=route_name("create"),
        )
        async def create_resource(body: dto_model, service: Service) -> Any:  # type: ignore[valid-type]
            return await service.create(body)

    if not spec.endpoint("update").disabled:

        @router.put("/{id}", response_model=dto_model, name=route_name("update"))
        async def update_resource(id: int, body: dto_model, service: Service) -> Any:  # type: ignore[valid-type]
            if has_id:
                body.id = id
            return await service.update(body)

    if not spec.endpoint("patch").disabled:

        @router.patch("/{id}", response_model=dto_model, name=route_name("patch"))
        async def patch_resource(id: int, request: Request, service: Service) -> Any:
            document = await read_patch_document(request)
            return await service.patch(id, document)

    delete = spec.endpoint("delete")
    if not delete.disabled:

        @router.delete("/{id}", status_code=delete.status_code, name=route_name("delete"))
        async def delete_resource(id: int, service: Service) -> Response:
            await service.delete(id)
            return Response(status_code=delete.status_code)

    return router
