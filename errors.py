import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Base class for errors that map onto an HTTP response.

    The error is serialized as ``{key: message}``; auth and lookup failures use
    ``message`` while store failures use ``error``.
    """

    status_code = 500
    key = "message"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ShopError):
    status_code = 400


class AuthError(ShopError):
    status_code = 401


class NotFound(ShopError):
    status_code = 404


class StoreError(ShopError):
    status_code = 500
    key = "error"


class StoreBusy(StoreError):
    status_code = 503


def _field_name(loc) -> str:
    # ("body", "email") -> "email"; ("path", "product_id") -> "product_id"
    parts = [str(p) for p in loc if p not in ("body", "path", "query", "header")]
    return ".".join(parts) or "body"


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={exc.key: exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            name = "body"
        else:
            name = _field_name(err.get("loc", ()))
        if name not in fields:
            fields.append(name)
    error = ValidationError(f"Missing or invalid fields: {', '.join(fields)}")
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, error.message)
    return await shop_error_handler(request, error)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return await shop_error_handler(request, StoreError("Server error"))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
