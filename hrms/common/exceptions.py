"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

BASE_ERROR_URI = "/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        self.headers = headers
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate / state conflict."""

    def __init__(self, field: str, value: Any, *, detail: Optional[str] = None) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=detail or f"An entry with {field}='{value}' already exists.",
            errors={field: [detail or f"'{value}' is already in use."]},
        )


class UnauthorizedException(AppException):
    """401 — missing, invalid or expired credentials."""

    def __init__(self, detail: str = "Authentication required.") -> None:
        super().__init__(
            status_code=401,
            error_type="unauthorized",
            title="Unauthorized",
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        first = next(iter(errors.values()), [])
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail=first[0] if first else "One or more fields failed validation.",
            errors=errors,
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _problem(
    request: Request,
    *,
    status: int,
    error_type: str,
    title: str,
    detail: str,
    errors: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": str(request.url.path),
        # Clients read `message` and `success` from every response
        "success": False,
        "message": detail,
    }
    if errors:
        body["errors"] = errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_problem(
            request,
            status=exc.status_code,
            error_type=exc.error_type,
            title=exc.title,
            detail=exc.detail,
            errors=exc.errors,
        ),
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def _handle_http_exception(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return JSONResponse(
        status_code=exc.status_code,
        content=_problem(
            request,
            status=exc.status_code,
            error_type="http-error",
            title="Request Failed",
            detail=detail,
        ),
        headers=getattr(exc, "headers", None),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content=_problem(
            request,
            status=422,
            error_type="validation-error",
            title="Validation Error",
            detail="Request validation failed.",
            errors=field_errors,
        ),
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _handle_http_exception)        # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
