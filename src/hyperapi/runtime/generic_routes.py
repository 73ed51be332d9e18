"""
Generic ``/api/{entity}`` routes.

One router serves every resource in the registry through the generic
dispatcher. Each request passes the security gate before any dispatch.
"""

# FastAPI inspects these handler annotations at runtime.

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from hyperapi.codegen.controller import disabled_message
from hyperapi.errors import NotFoundError
from hyperapi.runtime.controller import read_patch_document
from hyperapi.runtime.dispatcher import GenericDispatcher
from hyperapi.runtime.patch import PatchEngine
from hyperapi.runtime.registry import EntityRegistry, RegistryEntry
from hyperapi.runtime.security import Principal, PrincipalResolver, SecurityEnforcer
from hyperapi.specs.resource import HttpMethod

logger = logging.getLogger(__name__)


def page_window(
    entry: RegistryEntry,
    offset: int | None = None,
    limit: int | None = None,
    page: int | None = None,
    size: int | None = None,
) -> tuple[int, int]:
    """
    Resolve list query parameters to ``(offset, limit)``.

    ``offset``/``limit`` win over ``page``/``size``. A missing or zero limit
    falls back to the resource default; the limit never exceeds its maximum.
    """
    pagination = entry.spec.pagination
    requested = limit if limit is not None else size
    bounded = pagination.bound(requested) if requested else pagination.default_limit
    if offset is None:
        offset = (page or 0) * bounded
    return offset, bounded


def build_generic_router(
    registry: EntityRegistry,
    dispatcher: GenericDispatcher,
    enforcer: SecurityEnforcer,
    resolver: PrincipalResolver | None = None,
    patch_engine: PatchEngine | None = None,
    prefix: str = "/api",
) -> APIRouter:
    """
    Build the router mounted at ``{prefix}/{entity}``.

    Args:
        registry: Resources served by name
        dispatcher: CRUD over plain maps
        enforcer: Security gate run before every handler
        resolver: Extracts the caller from request headers
        patch_engine: Merge-patch engine; defaults to one over ``dispatcher``
        prefix: Mount point
    """
    patch_engine = patch_engine or PatchEngine(dispatcher)
    router = APIRouter(prefix=prefix, tags=["Generic"])

    def security_gate(request: Request) -> Principal | None:
        principal = resolver.resolve(request.headers) if resolver is not None else None
        decision = enforcer.check(
            request.method,
            request.path_params.get("entity"),
            principal,
            request.url.path,
        )
        decision.raise_for_status()
        return principal

    Caller = Annotated[Principal | None, Depends(security_gate)]

    def resource_for(entity: str, verb: HttpMethod) -> RegistryEntry:
        entry = registry.resolve(entity)
        if entry.spec.is_disabled(verb):
            raise NotFoundError(disabled_message(verb))
        return entry

    def actor(principal: Principal | None) -> str | None:
        return principal.name if principal is not None else None

    @router.get("/{entity}")
    async def list_entities(
        entity: str,
        caller: Caller,
        offset: int | None = Query(default=None, ge=0),
        limit: int | None = Query(default=None, ge=0),
        page: int | None = Query(default=None, ge=0),
        size: int | None = Query(default=None, ge=0),
    ) -> list[dict[str, Any]]:
        entry = resource_for(entity, HttpMethod.GET)
        start, count = page_window(entry, offset, limit, page, size)
        return await dispatcher.find_all(entry.record_type, start, count)

    @router.get("/{entity}/{id}")
    async def get_entity(entity: str, id: int, caller: Caller) -> dict[str, Any]:
        entry = resource_for(entity, HttpMethod.GET)
        found = await dispatcher.find_by_id(entry.record_type, id)
        if found is None:
            raise NotFoundError(f"{entry.resource_name} with id {id} not found")
        return found

    @router.post("/{entity}", status_code=201)
    async def create_entity(
        entity: str,
        caller: Caller,
        body: dict[str, Any] = Body(...),
    ) -> dict[str, Any]:
        entry = resource_for(entity, HttpMethod.POST)
        return await dispatcher.create(entry.record_type, body, actor(caller))

    @router.put("/{entity}/{id}")
    async def update_entity(
        entity: str,
        id: int,
        caller: Caller,
        body: dict[str, Any] = Body(...),
    ) -> dict[str, Any]:
        entry = resource_for(entity, HttpMethod.PUT)
        return await dispatcher.update(entry.record_type, {**body, "id": id}, actor(caller))

    @router.patch("/{entity}/{id}")
    async def patch_entity(
        entity: str, id: int, request: Request, caller: Caller
    ) -> dict[str, Any]:
        entry = resource_for(entity, HttpMethod.PATCH)
        document = await read_patch_document(request)
        return await patch_engine.patch(entry.record_type, id, document, actor(caller))

    @router.delete("/{entity}/{id}", status_code=204)
    async def delete_entity(entity: str, id: int, caller: Caller) -> Response:
        entry = resource_for(entity, HttpMethod.DELETE)
        await dispatcher.delete(entry.record_type, id)
        return Response(status_code=204)

    return router
