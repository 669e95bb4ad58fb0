"""Error Handlers — global exception handlers for the storefront API.

Invariants:
    - StorefrontError → its own http_status and to_response() envelope
    - RequestValidationError → 400 VALIDATION_ERROR with field-level details
    - Exception (catch-all) → 500, never leaks internal details
    - 4xx outcomes log at WARNING, 5xx at ERROR; ambiguous charges at CRITICAL
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.core.errors import (
    DomainValidationError, ErrorCategory, ErrorSeverity,
    PaymentGatewayUnavailableError, StorefrontError,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_storefront_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_storefront_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        """Render a domain/infrastructure error as its JSON envelope."""
        extra = {
            "error_code": exc.code,
            "path": request.url.path,
            "user_id": exc.context.user_id,
            "attempt_id": exc.context.attempt_id,
            "charge_id": exc.context.charge_id,
        }
        if isinstance(exc, PaymentGatewayUnavailableError):
            extra["ambiguous"] = exc.ambiguous
        logger.log(_log_level(exc), f"{exc.code}: {exc.message}", extra=extra)

        content = exc.to_response()
        if isinstance(exc, DomainValidationError):
            content["error"]["field"] = exc.field
        return JSONResponse(status_code=exc.http_status, content=content)


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        """Pydantic request validation failures."""
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            extra={"path": request.url.path}, exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _log_level(exc: StorefrontError) -> int:
    if exc.severity == ErrorSeverity.CRITICAL:
        return logging.CRITICAL
    if exc.http_status >= 500:
        return logging.ERROR
    return logging.WARNING


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": ErrorCategory.VALIDATION.value,
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
