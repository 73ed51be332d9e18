"""
Error types for HyperAPI resource declaration, synthesis and dispatch.

Generation-time errors (SpecValidationError and subclasses) abort synthesis
for one record type only. Request-time errors carry the HTTP status they
surface as; ``hyperapi.runtime.problems`` turns them into problem details.
"""

from __future__ import annotations


class HyperApiError(Exception):
    """Base exception for all HyperAPI errors."""

    status_code: int = 500
    title: str = "Unexpected Error"
    headers: dict[str, str] | None = None

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


# =============================================================================
# Declaration / generation errors
# =============================================================================


class SpecValidationError(HyperApiError):
    """
    Raised when a resource declaration cannot be normalized.

    Examples:
    - Record type does not extend BaseRecord
    - Mapping ignore path names an unknown field
    - Duplicate resource names in one registry
    """

    title = "Invalid Resource Declaration"


class InheritanceError(SpecValidationError):
    """Raised when a declared resource type does not extend the base record."""


class MappingPathError(SpecValidationError):
    """Raised when a mapping ignore path cannot be resolved against the record type."""

    def __init__(self, type_name: str, path: str, segment: str, reason: str):
        self.type_name = type_name
        self.path = path
        self.segment = segment
        self.reason = reason
        super().__init__(
            f"Invalid path '{path}' in mapping: segment '{segment}' {reason} in type {type_name}"
        )


class ConfigurationError(HyperApiError):
    """Raised when a type has no resource declaration or settings are unusable."""


# =============================================================================
# Request-time errors
# =============================================================================


class NotFoundError(HyperApiError):
    """Unknown resource name, missing id or disabled verb."""

    status_code = 404
    title = "Resource Not Found"


class BadRequestError(HyperApiError):
    """Malformed request payload."""

    status_code = 400
    title = "Bad Request"


class BadMergePatchError(BadRequestError):
    """Patch document is not a merge-patch object or could not be applied."""

    title = "Invalid Merge Patch"


class UnauthorizedError(HyperApiError):
    """Authentication is required and no principal was presented."""

    status_code = 401
    title = "Unauthorized"

    def __init__(self, message: str = "", realm: str = "hyperapi"):
        super().__init__(message)
        self.realm = realm
        self.headers = {"WWW-Authenticate": f'Bearer realm="{realm}"'}


class ForbiddenError(HyperApiError):
    """The principal holds none of the roles the resource allows."""

    status_code = 403
    title = "Forbidden"
