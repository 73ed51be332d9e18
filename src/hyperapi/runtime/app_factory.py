"""
App factory functions.

Builds the FastAPI application from settings: registry scan, repository,
security, exception handlers and either the generic ``/api/{entity}`` router
or one materialized router per resource.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal
from uuid import uuid4

from fastapi import Depends, FastAPI, Request

from hyperapi._version import __version__
from hyperapi.logging import get_api_logger, request_id_var
from hyperapi.runtime.dispatcher import GenericDispatcher
from hyperapi.runtime.events import ListenerEmitter
from hyperapi.runtime.generic_routes import build_generic_router
from hyperapi.runtime.problems import register_exception_handlers
from hyperapi.runtime.registry import EntityRegistry, ResourceConfigCache
from hyperapi.runtime.repository import InMemoryRepository, RepositoryPort
from hyperapi.runtime.security import (
    Principal,
    PrincipalResolver,
    SecurityEnforcer,
    TokenPrincipalResolver,
)

if TYPE_CHECKING:
    from starlette.middleware.base import RequestResponseEndpoint
    from starlette.responses import Response

    from hyperapi.codegen.materialize import MaterializedResource
    from hyperapi.config import HyperApiSettings

logger = get_api_logger()

REQUEST_ID_HEADER = "X-Request-ID"

AppMode = Literal["generic", "generated"]


@dataclass
class AppContext:
    """Everything ``create_app`` wired together; stored on ``app.state.hyperapi``."""

    settings: HyperApiSettings
    registry: EntityRegistry
    repository: RepositoryPort
    events: ListenerEmitter
    dispatcher: GenericDispatcher
    enforcer: SecurityEnforcer
    resolver: PrincipalResolver
    mode: AppMode = "generic"
    resources: dict[str, MaterializedResource] = field(default_factory=dict)


def create_request_id_middleware() -> type:
    """
    Create a Starlette BaseHTTPMiddleware for request correlation.

    Usage:
        app.add_middleware(create_request_id_middleware())
    """
    from starlette.middleware.base import BaseHTTPMiddleware

    class RequestIdMiddleware(BaseHTTPMiddleware):
        async def dispatch(
            self,
            request: Request,
            call_next: RequestResponseEndpoint,
        ) -> Response:
            request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
            token = request_id_var.set(request_id)
            try:
                response = await call_next(request)
            finally:
                request_id_var.reset(token)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

    return RequestIdMiddleware


def _resource_gate(
    context: AppContext, resource_name: str
) -> Callable[[Request], Principal | None]:
    def gate(request: Request) -> Principal | None:
        principal = context.resolver.resolve(request.headers)
        context.enforcer.check(
            request.method, resource_name, principal, request.url.path
        ).raise_for_status()
        return principal

    return gate


def _mount_generated(app: FastAPI, context: AppContext) -> None:
    from hyperapi.codegen.generator import synthesize
    from hyperapi.codegen.materialize import materialize

    for entry in context.registry.entries():
        bundle = synthesize(entry.spec)
        resource = materialize(
            bundle,
            entry.record_type,
            context.repository,
            events=context.events,
            dependencies=[Depends(_resource_gate(context, entry.resource_name))],
        )
        context.resources[entry.resource_name] = resource
        app.include_router(resource.router)


def create_app(
    settings: HyperApiSettings | None = None,
    registry: EntityRegistry | None = None,
    repository: RepositoryPort | None = None,
    events: ListenerEmitter | None = None,
    resolver: PrincipalResolver | None = None,
    mode: AppMode = "generic",
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Process settings (defaults to ``HyperApiSettings()``)
        registry: Resource registry; scanned from ``settings.scan_packages`` when omitted
        repository: Persistence port (default: in-memory)
        events: Listener emitter shared by every resource
        resolver: Principal resolver (default: static bearer tokens from settings)
        mode: ``"generic"`` serves ``/api/{entity}`` through the dispatcher;
            ``"generated"`` mounts one materialized router per resource

    Example:
        >>> app = create_app(load_settings())
        >>> # Run with uvicorn: uvicorn mymodule:app
    """
    from hyperapi.config import HyperApiSettings

    settings = settings or HyperApiSettings()
    if registry is None:
        registry = EntityRegistry.scan(
            settings.scan_packages, ResourceConfigCache(settings.resources)
        )
    repository = repository or InMemoryRepository()
    events = events or ListenerEmitter()
    context = AppContext(
        settings=settings,
        registry=registry,
        repository=repository,
        events=events,
        dispatcher=GenericDispatcher(repository, registry=registry, events=events),
        enforcer=SecurityEnforcer(registry, settings.realm),
        resolver=resolver or TokenPrincipalResolver(settings.principals()),
        mode=mode,
    )

    app = FastAPI(
        title="HyperAPI",
        description=f"CRUD API for {len(registry)} resource(s)",
        version=__version__,
    )
    app.add_middleware(create_request_id_middleware())
    register_exception_handlers(app)

    if mode == "generated":
        _mount_generated(app, context)
    else:
        app.include_router(
            build_generic_router(registry, context.dispatcher, context.enforcer, context.resolver)
        )

    app.state.hyperapi = context
    logger.info("HyperAPI app created (%s mode, %d resource(s))", mode, len(registry))
    return app


def run_app(
    settings: HyperApiSettings | None = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    mode: AppMode = "generic",
    **kwargs: Any,
) -> None:
    """
    Run a HyperAPI application with uvicorn.

    Example:
        >>> run_app(load_settings(), port=8080)
    """
    import uvicorn

    app = create_app(settings, mode=mode, **kwargs)
    uvicorn.run(app, host=host, port=port)
