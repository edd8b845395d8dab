"""Error taxonomy for the store service and its HTTP mapping."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for all store errors."""
    status_code = 500
    code = "STORE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(StoreError):
    """Missing or malformed input."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(StoreError):
    """Referenced entity does not exist or is hidden from the caller."""
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(StoreError):
    """Caller is not allowed to perform the operation."""
    status_code = 403
    code = "FORBIDDEN"


class UnauthorizedError(ForbiddenError):
    """Session is absent, expired or invalid."""
    status_code = 401
    code = "UNAUTHORIZED"


class ConflictError(StoreError):
    """Uniqueness violation."""
    status_code = 409
    code = "CONFLICT"


class InvalidStateTransitionError(StoreError):
    """Order status change that the state machine does not allow."""
    status_code = 400
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from '{current}' to '{target}'")


class UpstreamFailureError(StoreError):
    """Payment collaborator or storage layer unavailable."""
    status_code = 500
    code = "UPSTREAM_FAILURE"


def _error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "code": code, **extra}
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Map a domain error to its HTTP response."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log("Request failed", extra={
        "path": request.url.path,
        "method": request.method,
        "error_code": exc.code,
        "status_code": exc.status_code,
        "error": exc.message
    })
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    response = _error_response(exc.status_code, exc.code, exc.message)
    if headers:
        response.headers.update(headers)
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as validation errors (400)."""
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info("Request validation failed", extra={
        "path": request.url.path,
        "method": request.method,
        "errors": errors
    })
    return _error_response(400, ValidationError.code, "Invalid request", errors=errors)


async def storage_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Database connectivity problems surface as upstream failures."""
    logger.exception("Storage layer unavailable", extra={
        "path": request.url.path,
        "method": request.method
    })
    return _error_response(500, UpstreamFailureError.code, "Storage unavailable")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error mapping on an application."""
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(OperationalError, storage_unavailable_handler)
