"""
Per-request security gate.

``SecurityEnforcer.check`` decides whether a request may reach dispatch
based on the target resource's ``security`` configuration. Principals are
produced by a pluggable ``PrincipalResolver``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from hyperapi.errors import ForbiddenError, HyperApiError, UnauthorizedError
from hyperapi.logging import get_api_logger
from hyperapi.runtime.problems import ProblemDetails
from hyperapi.runtime.registry import EntityRegistry
from hyperapi.specs.resource import HttpMethod

logger = get_api_logger()

DEFAULT_REALM = "hyperapi"

_UNGUARDED = frozenset({HttpMethod.OPTIONS.value, HttpMethod.HEAD.value})


# =============================================================================
# Principal
# =============================================================================


class Principal(BaseModel):
    """An authenticated caller."""

    name: str
    roles: frozenset[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    def has_role(self, role: str) -> bool:
        return role in self.roles


class PrincipalResolver(Protocol):
    """Extracts the caller from request headers; None means anonymous."""

    def resolve(self, headers: Mapping[str, str]) -> Principal | None: ...


class TokenPrincipalResolver:
    """
    Resolves ``Authorization: Bearer <token>`` against a static token table.

    Example:
        resolver = TokenPrincipalResolver(
            {"s3cret": Principal(name="alice", roles=frozenset({"admin"}))}
        )
    """

    def __init__(self, tokens: Mapping[str, Principal] | None = None):
        self.tokens = dict(tokens or {})

    def resolve(self, headers: Mapping[str, str]) -> Principal | None:
        header = headers.get("authorization") or headers.get("Authorization")
        if not header:
            return None
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return self.tokens.get(token.strip())


# =============================================================================
# Decision
# =============================================================================


class SecurityDecision(BaseModel):
    """Outcome of a security check; rejections carry a problem body."""

    allowed: bool
    status: int = 200
    problem: ProblemDetails | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def allow(cls) -> SecurityDecision:
        return cls(allowed=True)

    def raise_for_status(self) -> None:
        """Raise the matching ``HyperApiError`` for a rejection."""
        if self.allowed:
            return
        detail = self.problem.detail if self.problem else None
        if self.status == 401:
            error: HyperApiError = UnauthorizedError(detail or "Authentication required")
            error.headers = dict(self.headers)
            raise error
        raise ForbiddenError(detail or "Access denied")


# =============================================================================
# Enforcer
# =============================================================================


class SecurityEnforcer:
    """
    Evaluates resource security rules before dispatch.

    Unknown resources and non-resource paths are allowed so that routing, not
    security, reports them.
    """

    def __init__(self, registry: EntityRegistry, realm: str = DEFAULT_REALM):
        self.registry = registry
        self.realm = realm

    def check(
        self,
        method: str,
        resource_name: str | None,
        principal: Principal | None,
        path: str = "",
    ) -> SecurityDecision:
        if method.upper() in _UNGUARDED:
            return SecurityDecision.allow()
        if not resource_name:
            return SecurityDecision.allow()
        entry = self.registry.by_simple_name(resource_name)
        if entry is None:
            return SecurityDecision.allow()

        security = entry.spec.security
        if security.is_anonymous:
            return SecurityDecision.allow()

        if security.require_auth and principal is None:
            logger.warning("Unauthenticated request to %s at %s", resource_name, path)
            return SecurityDecision(
                allowed=False,
                status=401,
                problem=ProblemDetails.of(401, detail="Authentication required", instance=path),
                headers={"WWW-Authenticate": f'Bearer realm="{self.realm}"'},
            )

        allowed = set(security.roles_allowed)
        if allowed and (principal is None or not allowed & principal.roles):
            logger.warning(
                "Forbidden request to %s by user %s",
                entry.resource_name,
                principal.name if principal else "<anonymous>",
            )
            return SecurityDecision(
                allowed=False,
                status=403,
                problem=ProblemDetails.of(
                    403, detail=f"Access denied for entity {entry.resource_name}", instance=path
                ),
            )
        return SecurityDecision.allow()
