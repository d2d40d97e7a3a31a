"""
Domain errors for the booking and payment flow.

Services raise these; the API layer turns them into the
``{success, message, data, error}`` envelope with the status code
carried on each class.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for all business errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    status_code = 400


class InvalidRangeError(ValidationError):
    """End of a time window is not after its start."""


class NotFoundError(DomainError):
    status_code = 404


class ResourceUnavailableError(DomainError):
    status_code = 400


class SlotConflictError(DomainError):
    status_code = 400


class InvalidStateError(DomainError):
    status_code = 400


class InsufficientBalanceError(DomainError):
    status_code = 400

    def __init__(self, available: int, required: int) -> None:
        super().__init__(
            "Insufficient coins for booking",
            details={
                "available": available,
                "required": required,
                "needed": required - available,
            },
        )
        self.available = available
        self.required = required


class PaymentGatewayError(DomainError):
    status_code = 502


class PaymentGatewayTimeout(PaymentGatewayError):
    """The gateway did not answer in time; the caller may retry."""

    status_code = 504


class PaymentVerificationError(DomainError):
    status_code = 400


class WebhookSignatureError(DomainError):
    status_code = 400


class MalformedWebhookError(DomainError):
    status_code = 400


def envelope(data: Any = None, message: str = "", success: bool = True, error: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": success, "message": message, "data": jsonable_encoder(data)}
    if error is not None:
        body["error"] = error
    return body


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(
            envelope(exc.details or None, exc.message, success=False, error=exc.code),
            status_code=exc.status_code,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        data = None
        message = exc.detail
        if isinstance(exc.detail, dict):
            message = exc.detail.get("message", "")
            data = exc.detail.get("data")
        return JSONResponse(
            envelope(data, str(message), success=False, error=str(message)),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
        slim = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]
        return JSONResponse(
            envelope({"errors": slim}, message, success=False, error="ValidationError"),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            envelope(None, "Internal server error", success=False, error="InternalError"),
            status_code=500,
        )
