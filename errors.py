"""
API error taxonomy

Every error is an HTTPException so handlers raise them the same way they
would raise a plain HTTPException. The exception handlers registered in
main.py render them as {"error": <message>, **extra}.
"""
import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    status_code = 500
    message = "Server error"

    def __init__(self, message=None, status_code=None, **extra):
        super().__init__(status_code=status_code or self.status_code, detail=message or self.message)
        self.extra = extra


class ValidationError(ApiError):
    status_code = 400
    message = "Validation failed"


class ConflictError(ApiError):
    status_code = 400
    message = "Already exists"


class AuthError(ApiError):
    status_code = 401
    message = "Unauthorized"


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class RateLimited(ApiError):
    status_code = 429
    message = "Too many requests, please try again later."


class PaymentVerificationError(ApiError):
    status_code = 400
    message = "Invalid payment signature"


class UpstreamUnavailable(ApiError):
    status_code = 503
    message = "Upstream service unavailable"


class ServerError(ApiError):
    status_code = 500
    message = "Server error"


def _field_errors(exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # drop the leading "body"/"query" location
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return errors


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = {"error": exc.detail}
    body.update(getattr(exc, "extra", {}) or {})
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Validation failed", "errors": _field_errors(exc)})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})


def install_error_handlers(app):
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
