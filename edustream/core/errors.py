"""
Service error taxonomy and FastAPI exception handlers.

Handlers translate domain errors into JSON responses of the form
{"detail": "..."} (plus "details" for validation failures). Internal
details are logged, never returned.
"""
import logging
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, details: Optional[List[str]] = None, message: Optional[str] = None):
        super().__init__(message)
        self.details = details or []


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class LinkConflict(Conflict):
    """An external identity could not be linked to an existing user record."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Account is already linked to another identity"


class PayloadTooLarge(ServiceError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "Uploaded file is too large"


class UpstreamFailure(ServiceError):
    """The identity provider, payment processor or object store failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Upstream service error"


class ServiceUnavailable(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service not configured"


class Internal(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


async def service_error_handler(request: Request, exc: ServiceError):
    """Render a ServiceError."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    content = {"detail": exc.message}
    if isinstance(exc, ValidationFailed):
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render FastAPI request validation errors as ValidationFailed."""
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "details": details},
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Uncaught exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
