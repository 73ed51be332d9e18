"""
Controller synthesis.

Five standard endpoints under the resource base path. A verb listed in
``disabled_verbs`` keeps its route but the endpoint always fails with a 404.
"""

from __future__ import annotations

from hyperapi.codegen.service import service_name
from hyperapi.specs.artifacts import ControllerSpec, EndpointSpec, QueryParamSpec
from hyperapi.specs.resource import HttpMethod, ResourceSpec


def disabled_message(verb: HttpMethod) -> str:
    return f"{verb.value} method is disabled for this resource"


def _endpoint(
    spec: ResourceSpec,
    name: str,
    verb: HttpMethod,
    path: str,
    status_code: int = 200,
    **extra: object,
) -> EndpointSpec:
    disabled = spec.is_disabled(verb)
    return EndpointSpec(
        name=name,
        verb=verb,
        path=path,
        status_code=status_code,
        disabled=disabled,
        disabled_message=disabled_message(verb) if disabled else None,
        **extra,  # type: ignore[arg-type]
    )


def build_controller_spec(spec: ResourceSpec) -> ControllerSpec:
    pagination = spec.pagination
    endpoints = (
        _endpoint(
            spec,
            "get_all",
            HttpMethod.GET,
            "",
            query_params=(
                QueryParamSpec(name="offset", default=0),
                QueryParamSpec(name="limit", default=pagination.default_limit),
            ),
            max_limit=pagination.max_limit,
        ),
        _endpoint(spec, "get_by_id", HttpMethod.GET, "/{id}"),
        _endpoint(spec, "create", HttpMethod.POST, "", status_code=201),
        _endpoint(spec, "update", HttpMethod.PUT, "/{id}"),
        _endpoint(spec, "patch", HttpMethod.PATCH, "/{id}"),
        _endpoint(spec, "delete", HttpMethod.DELETE, "/{id}", status_code=204),
    )
    return ControllerSpec(
        name=f"{spec.type_name}Controller",
        base_path=spec.base_path,
        scope=spec.scope,
        service_name=service_name(spec),
        dto_name=spec.dto_name,
        endpoints=endpoints,
    )
