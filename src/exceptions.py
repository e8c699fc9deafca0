import logging
from typing import Dict, Iterable, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class AppError(Exception):
    """
    Base class of the errors the API reports to its callers.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"error": self.message}


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation failed"

    def __init__(self, violations: Iterable, message: Optional[str] = None):
        self.violations = list(violations)
        super().__init__(message)

    def details(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for violation in self.violations:
            grouped.setdefault(violation.field, []).append(violation.message)
        return grouped

    def to_payload(self) -> dict:
        return {"error": self.message, "details": self.details()}


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Insufficient permissions"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict with existing data"


class PayloadTooLarge(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "Payload too large"


class UpstreamServiceError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Image storage service failed"


def _field_from_loc(loc) -> str:
    # ("body", "username") -> "username", ("path", "cat_id") -> "cat_id"
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "form")]
    return ".".join(parts) if parts else "body"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_payload(), headers=exc.headers
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = _field_from_loc(error.get("loc", ()))
        if error.get("type") == "missing":
            message = f"{field} is required"
        else:
            message = error.get("msg", "Invalid value")
        details.setdefault(field, []).append(message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": details},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.info("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=Conflict().to_payload())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit %s exceeded on %s %s", exc.detail, request.method, request.url.path
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "Too many attempts, try again later"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
