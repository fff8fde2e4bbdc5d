"""Custom exceptions and handlers for consistent error responses.

Every error body has the shape:

    {
        "success": false,
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // optional
        }
    }

Unexpected errors are logged with their traceback and reported to the
client with a generic message only.
"""

import logging
from typing import Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ReadinessError(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Union[dict, list, None] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(ReadinessError):
    """Exception for business logic violations."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class ResourceNotFoundError(ReadinessError):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class SubmissionNotFoundError(ReadinessError):
    """No stored submission matched the identifying fields of a callback."""

    def __init__(self, keys: dict):
        super().__init__(
            message="Audit submission not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="SUBMISSION_NOT_FOUND",
            details={"keys": keys},
        )


class StepValidationError(ReadinessError):
    """The active wizard step has missing or invalid fields."""

    def __init__(self, step: int, errors: dict[str, str]):
        super().__init__(
            message=f"Step {step + 1} is incomplete",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="STEP_INVALID",
            details={"errors": errors},
        )


class PdfFormatError(ReadinessError):
    """PDF payload is not base64 or does not carry the PDF signature."""

    def __init__(self, message: str = "Invalid PDF data format"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_PDF_FORMAT",
        )


class WorkflowRejectedError(ReadinessError):
    """The workflow engine reported a failure instead of a report."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="WORKFLOW_FAILED",
        )


class WorkflowUnavailableError(ReadinessError):
    """The workflow engine could not be reached at the network level."""

    def __init__(self, message: str = "Report service is unreachable. Please try again."):
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="WORKFLOW_UNAVAILABLE",
        )


class SubmitInProgressError(ReadinessError):
    """A submit for the same draft is already in flight."""

    def __init__(self):
        super().__init__(
            message="Submission already in progress",
            status_code=status.HTTP_409_CONFLICT,
            error_code="SUBMIT_IN_PROGRESS",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Build the standard error body."""
    error = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path}"


async def readiness_exception_handler(request: Request, exc: ReadinessError) -> JSONResponse:
    logger.warning("%s failed: %s - %s", _where(request), exc.error_code, exc.message)
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTPException raised by routers or by routing itself (404, 405)."""
    if exc.status_code >= 500:
        logger.error("%s failed: HTTP %s %s", _where(request), exc.status_code, exc.detail)
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Request body / query failed schema validation → 400 with a field list."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("%s rejected: %d validation error(s)", _where(request), len(errors))
    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("%s failed: database unavailable: %s", _where(request), exc)
    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, hide the details from the client."""
    logger.exception("Unhandled exception on %s", _where(request))
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Internal server error",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(ReadinessError, readiness_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
