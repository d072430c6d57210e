# fulfillment/api/errors.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from fulfillment.domain.errors import (
    Conflict,
    EmptyCart,
    Forbidden,
    FulfillmentError,
    IdentityUnavailable,
    InsufficientStock,
    InvalidArgument,
    NotFound,
    StorageFailure,
    Unauthenticated,
)
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_CODES = {
    InvalidArgument: 400,
    EmptyCart: 400,
    Unauthenticated: 401,
    Forbidden: 403,
    NotFound: 404,
    InsufficientStock: 409,
    Conflict: 409,
    StorageFailure: 503,
    IdentityUnavailable: 503,
}


def status_code_for(error: FulfillmentError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def error_body(kind: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"kind": kind, "message": message, "details": details or {}}}


async def fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()}, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content=error_body(InvalidArgument.kind, "Invalid request", {"fields": fields}),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # storage errors raised outside a service unit of work, e.g. while resolving the caller
    logger.error(f"{request.method} {request.url.path} failed on storage: {exc}")
    return JSONResponse(
        status_code=STATUS_CODES[StorageFailure],
        content=error_body(StorageFailure.kind, "Storage unavailable"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FulfillmentError, fulfillment_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
