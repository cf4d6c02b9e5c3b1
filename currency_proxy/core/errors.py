from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.exceptions import RequestValidationError
from starlette import status
import logging

logger = logging.getLogger("app.errors")

CONVERSION_FAILED_MESSAGE = "Failed to convert currency"


class ProxyError(Exception):
    """Base class for errors raised by the conversion proxy."""


class ConfigError(ProxyError):
    """Startup configuration (credentials) is missing or malformed. Fatal."""


class ValidationError(ProxyError):
    """Request is missing required fields."""


class ProviderError(ProxyError):
    """Upstream provider failed, was unreachable, or returned a malformed payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def http_exception_handler(request: Request, exc):  # type: ignore
    if getattr(exc, "status_code", 404) != status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "not_found",
            "detail": f"No route for {request.method} {request.url.path}",
        },
    )


def request_validation_handler(request: Request, exc: RequestValidationError):  # type: ignore
    logger.warning("rejected malformed request body")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "invalid request body",
            "detail": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()
            ],
        },
    )


def validation_error_handler(request: Request, exc: ValidationError):  # type: ignore
    logger.error(str(exc))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": str(exc)},
    )


def provider_error_handler(request: Request, exc: ProviderError):  # type: ignore
    logger.error("error converting currency: %s", exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": CONVERSION_FAILED_MESSAGE},
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("an error occurred: %s", exc)
    return PlainTextResponse(
        "Something broke!", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
