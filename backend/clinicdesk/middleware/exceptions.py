"""Error handlers: every failure leaves the API in one envelope.

    {"error": {"code": "ERROR_CODE", "message": "...", "details": {...}}}

Service code raises ClinicDeskException subclasses (or plain HTTPException
from the auth layer); the handlers below translate those, request
validation failures, malformed amounts and database errors.  Unexpected
exceptions are logged with their traceback and reported as a generic 500.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinicdesk.services.totals import AmountParseError

logger = logging.getLogger(__name__)

# (substring of the driver message, error code, client-facing message)
_INTEGRITY_RULES = (
    ("unique", "DUPLICATE_RECORD", "A record with this value already exists"),
    ("foreign key", "FOREIGN_KEY_VIOLATION", "Referenced record does not exist"),
    ("not null", "NULL_VALUE_NOT_ALLOWED", "Required field is missing"),
    ("check", "CONSTRAINT_VIOLATION", "Value outside the allowed range"),
)


class ClinicDeskException(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if error_code:
            self.error_code = error_code


class BusinessLogicError(ClinicDeskException):
    """Well-formed request that breaks a billing or scheduling rule."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "BUSINESS_LOGIC_ERROR"


class ResourceNotFoundError(ClinicDeskException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    body = {"code": code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path}"


async def clinicdesk_exception_handler(request: Request, exc: ClinicDeskException) -> JSONResponse:
    logger.warning(f"{_where(request)} -> {exc.error_code}: {exc.message}")
    return error_response(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{_where(request)} -> HTTP {exc.status_code}: {exc.detail}")
    return error_response(
        exc.status_code,
        f"HTTP_{exc.status_code}",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError | ValidationError,
) -> JSONResponse:
    errors = [
        {
            "field": " -> ".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.info(f"{_where(request)} -> validation failed on {[e['field'] for e in errors]}")
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Validation error",
        {"errors": errors},
    )


async def amount_exception_handler(request: Request, exc: AmountParseError) -> JSONResponse:
    logger.info(f"{_where(request)} -> bad amount: {exc}")
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "INVALID_AMOUNT", str(exc))


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    raw = str(getattr(exc, "orig", exc)).lower()
    logger.error(f"{_where(request)} -> integrity error: {raw}")

    for needle, code, message in _INTEGRITY_RULES:
        if needle in raw:
            break
    else:
        code, message = "INTEGRITY_ERROR", "Database constraint violation"
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, code, message)


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"{_where(request)} -> database unavailable: {exc}")
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DATABASE_UNAVAILABLE",
        "Database temporarily unavailable. Please try again.",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{_where(request)} -> unhandled {type(exc).__name__}: {exc}", exc_info=exc)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred. Please try again later.",
    )


def register_exception_handlers(app: FastAPI) -> None:
    handlers = {
        ClinicDeskException: clinicdesk_exception_handler,
        HTTPException: http_exception_handler,
        StarletteHTTPException: http_exception_handler,
        RequestValidationError: validation_exception_handler,
        ValidationError: validation_exception_handler,
        AmountParseError: amount_exception_handler,
        IntegrityError: integrity_exception_handler,
        OperationalError: operational_exception_handler,
        Exception: unhandled_exception_handler,
    }
    for exc_class, handler in handlers.items():
        app.add_exception_handler(exc_class, handler)
