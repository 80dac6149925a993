"""Domain exceptions and their RFC 7807 (problem+json) rendering."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from leaveflow.common.logging import request_id_var

logger = logging.getLogger(__name__)

BASE_ERROR_URI = "https://leaveflow.dev/errors"
PROBLEM_MEDIA_TYPE = "application/problem+json"


class AppException(Exception):
    """Base for every error the API reports as a problem document."""

    status_code: int = 500
    error_type: str = "internal-error"
    title: str = "Internal Error"

    def __init__(self, detail: str, errors: Optional[dict[str, Any]] = None) -> None:
        self.detail = detail
        self.errors = errors
        super().__init__(detail)

    def to_problem(self, instance: str) -> dict[str, Any]:
        problem: dict[str, Any] = {
            "type": f"{BASE_ERROR_URI}/{self.error_type}",
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
            "instance": instance,
        }
        if self.errors:
            problem["errors"] = self.errors
        request_id = request_id_var.get()
        if request_id:
            problem["request_id"] = request_id
        return problem


class NotFoundException(AppException):
    status_code = 404
    error_type = "not-found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.title = f"{entity_type} Not Found"
        super().__init__(f"{entity_type} with id '{entity_id}' does not exist.")


class UnauthorizedException(AppException):
    """401 for a missing, expired or unusable access token."""

    status_code = 401
    error_type = "unauthorized"
    title = "Unauthorized"


class ForbiddenException(AppException):
    """403. The detail never says which rule refused the actor."""

    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"

    def __init__(self, detail: str = "You are not permitted to perform this action.") -> None:
        super().__init__(detail)


class ValidationException(AppException):
    """422 for input that is well-formed but semantically wrong."""

    status_code = 422
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__("One or more fields failed validation.", errors=errors)


class EligibilityException(AppException):
    """422 carrying every violated leave rule, not just the first."""

    status_code = 422
    error_type = "eligibility-error"
    title = "Leave Request Not Eligible"

    def __init__(self, reasons: Sequence[str]) -> None:
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons), errors={"eligibility": self.reasons})


class InsufficientBalanceException(EligibilityException):
    def __init__(self, available: int, requested: int) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            [f"insufficient balance: {available} available, {requested} requested"],
        )


class StateConflictException(AppException):
    """409: the request's current status does not allow the transition."""

    status_code = 409
    error_type = "state-conflict"
    title = "Conflict"


class ConsistencyFault(AppException):
    """500: the ledger caught a bookkeeping error, e.g. a release underflow."""

    error_type = "consistency-fault"
    title = "Consistency Fault"


def _problem_response(status_code: int, body: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, media_type=PROBLEM_MEDIA_TYPE)


async def _handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            exc.error_type, request.method, request.url.path, exc.detail,
        )
    return _problem_response(exc.status_code, exc.to_problem(request.url.path))


def _field_name(loc: Sequence[Any]) -> str:
    # Drop the leading "body" / "query" / "path" segment
    if len(loc) > 1:
        return ".".join(str(part) for part in loc[1:])
    return str(loc[0]) if loc else "unknown"


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(err.get("loc", ())), []).append(
            err.get("msg", "Invalid value"),
        )
    problem = ValidationException(errors).to_problem(request.url.path)
    problem["detail"] = "Request validation failed."
    return _problem_response(422, problem)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, _handle_app_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
