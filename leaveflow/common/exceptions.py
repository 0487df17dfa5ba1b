"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

BASE_ERROR_URI = "https://leaveflow.local/errors"

logger = logging.getLogger(__name__)


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
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
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
    """422 — business-rule violations the caller can correct."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class OverlapException(AppException):
    """409 — the applicant already has an active leave on these dates."""

    def __init__(self, conflicting_leave: dict[str, Any]) -> None:
        self.conflicting_leave = conflicting_leave
        super().__init__(
            status_code=409,
            error_type="leave-overlap",
            title="Overlapping Leave",
            detail=(
                f"You already have a {conflicting_leave['leave_type']} leave "
                f"from {conflicting_leave['start_date']} to "
                f"{conflicting_leave['end_date']} "
                f"({conflicting_leave['status']}) overlapping these dates."
            ),
            errors={"conflicting_leave": conflicting_leave},
        )


class CoveringConflictException(AppException):
    """409 — the applicant is an accepted cover during the requested dates."""

    def __init__(self, covering_duties: list[dict[str, Any]]) -> None:
        self.covering_duties = covering_duties
        covering_for = ", ".join(
            f"{duty['employee_name']} ({duty['start_date']} - {duty['end_date']})"
            for duty in covering_duties
        )
        super().__init__(
            status_code=409,
            error_type="covering-conflict",
            title="Covering Duty Conflict",
            detail=(
                "You cannot apply for this leave because you have accepted to "
                f"cover duties for: {covering_for}. Only medical leave may be "
                "taken during an active covering duty."
            ),
            errors={"covering_duties": covering_duties},
        )


class StaleAssignmentException(AppException):
    """409 — the reassignment or candidate changed since it was listed."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=409,
            error_type="stale-assignment",
            title="Stale Assignment",
            detail=f"{detail} Refresh the candidate list and try again.",
        )


class PersistenceException(AppException):
    """500 — storage failure; the transaction was rolled back."""

    def __init__(self) -> None:
        super().__init__(
            status_code=500,
            error_type="persistence-error",
            title="Storage Failure",
            detail="The request could not be saved. Please try again later.",
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
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
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


async def _handle_sqlalchemy_error(
    request: Request,
    exc: SQLAlchemyError,
) -> JSONResponse:
    logger.exception("Storage failure on %s", request.url.path, exc_info=exc)
    return await _handle_app_exception(request, PersistenceException())


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _handle_sqlalchemy_error)    # type: ignore[arg-type]
