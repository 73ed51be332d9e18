"""
Problem details (RFC 7807) responses for HyperAPI applications.

Every error leaving the HTTP layer is shaped as
``{type, title, status, detail, instance}`` and served as
``application/problem+json``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from hyperapi.errors import HyperApiError

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"
GENERIC_DETAIL = "An unexpected error occurred"

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Resource Not Found",
    405: "Method Not Allowed",
    500: "Unexpected Error",
}


class ProblemDetails(BaseModel):
    """Structured error body."""

    type: str = Field(description="URI identifying the problem type")
    title: str
    status: int
    detail: str | None = None
    instance: str | None = Field(default=None, description="Request path")

    @classmethod
    def of(
        cls,
        status: int,
        detail: str | None = None,
        title: str | None = None,
        instance: str | None = None,
    ) -> ProblemDetails:
        return cls(
            type=f"https://httpstatuses.com/{status}",
            title=title or _TITLES.get(status, "Error"),
            status=status,
            detail=detail,
            instance=instance,
        )


class ProblemResponse(JSONResponse):
    media_type = PROBLEM_MEDIA_TYPE


def problem_response(
    problem: ProblemDetails,
    headers: dict[str, str] | None = None,
) -> Response:
    return ProblemResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register problem-details exception handlers on a FastAPI application.

    Handles:
    - HyperApiError: status and title from the exception class
    - HTTPException: framework errors (unknown route, wrong method)
    - RequestValidationError: malformed path/query/body (400)
    - Exception: anything else (500)

    Args:
        app: FastAPI application instance
    """
    from fastapi import Request
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    @app.exception_handler(HyperApiError)
    async def hyperapi_error_handler(request: Request, exc: HyperApiError) -> Response:
        if exc.status_code >= 500:
            logger.error("Unhandled HyperAPI error on %s: %s", request.url.path, exc)
        problem = ProblemDetails.of(
            exc.status_code,
            detail=exc.message or None,
            title=exc.title,
            instance=request.url.path,
        )
        return problem_response(problem, getattr(exc, "headers", None))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        detail = exc.detail if isinstance(exc.detail, str) else None
        problem = ProblemDetails.of(exc.status_code, detail=detail, instance=request.url.path)
        return problem_response(problem, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        messages: list[str] = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            messages.append(f"{loc}: {err.get('msg', 'invalid')}")
        problem = ProblemDetails.of(400, detail="; ".join(messages), instance=request.url.path)
        return problem_response(problem)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
        logger.exception("Unexpected error on %s", request.url.path)
        problem = ProblemDetails.of(
            500,
            detail=str(exc) or GENERIC_DETAIL,
            instance=request.url.path,
        )
        return problem_response(problem)

