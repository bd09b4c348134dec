"""Exception handlers turning failures into ``{success: false, ...}`` envelopes."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.errors import OrderingError
from shared.auth import Forbidden, Unauthenticated
from shared.throttle import RateLimitExceeded

logger = structlog.get_logger(__name__)


def error_response(status_code, error, message, details=None, headers=None):
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message, "details": details},
        headers=headers,
    )


def _first_message(messages):
    for field, errors in (messages or {}).items():
        if errors:
            text = errors[0] if isinstance(errors, list) else errors
            return text if field == "_entity" else f"{field}: {text}"
    return "Invalid request"


async def ordering_error_handler(request: Request, exc: OrderingError):
    logger.info("request_rejected", path=request.url.path, error=exc.title, message=exc.message)
    return error_response(exc.status_code, exc.title, exc.message, exc.details or None)


async def validation_error_handler(request: Request, exc: ValidationError):
    return error_response(400, "Validation Error", _first_message(exc.messages), exc.messages)


async def not_found_handler(request: Request, exc: ObjectNotFoundError):
    return error_response(404, "Not Found", str(exc) or "Resource not found")


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return error_response(400, "Validation Error", "Request body is invalid", details)


async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    return error_response(401, exc.title, exc.message, headers={"WWW-Authenticate": "Bearer"})


async def forbidden_handler(request: Request, exc: Forbidden):
    return error_response(403, exc.title, exc.message, {"capability": exc.capability})


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return error_response(
        429,
        exc.title,
        exc.message,
        {"retry_after": exc.retry_after},
        headers={"Retry-After": str(exc.retry_after)},
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return error_response(500, "Internal Server Error", "Something went wrong")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Unauthenticated, unauthenticated_handler)
    app.add_exception_handler(Forbidden, forbidden_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
