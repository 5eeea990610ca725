"""Error taxonomy and the JSON error responses rendered for it."""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(StorefrontError):
    """Malformed or missing input."""

    status_code = 400


class InsufficientStock(StorefrontError):
    """Requested quantity exceeds the product's available stock."""

    status_code = 400

    def __init__(self, product_id: int, product_name: str):
        super().__init__(
            f"Insufficient stock for product: {product_name}",
            {"productId": product_id},
        )
        self.product_id = product_id
        self.product_name = product_name


class Unauthorized(StorefrontError):
    status_code = 401


class AccessDenied(StorefrontError):
    status_code = 403


class NotFound(StorefrontError):
    status_code = 404


class PersistenceFailure(StorefrontError):
    """Unexpected storage error; the message never carries driver details."""

    status_code = 500


def error_body(message: str, **details: Any) -> Dict[str, Any]:
    return {"error": message, **details}


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error": exc.message
        })
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, **exc.details)
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=400,
        content=error_body(
            message,
            details=[{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]
        )
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content=error_body("Something went wrong!"))


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": ...}``."""
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
