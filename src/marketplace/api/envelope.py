"""JSON envelopes and the exception handlers that produce the error one.

    {"success": true, "data": ...}
    {"success": false, "error": {"code": ..., "message": ..., "details": ...}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from pydantic.alias_generators import to_camel

from marketplace.errors import FulfillmentError, InternalError

logger = structlog.get_logger(__name__)


def camelize(data):
    """Convert snake_case keys to camelCase, recursively."""
    if isinstance(data, dict):
        return {to_camel(key): camelize(value) for key, value in data.items()}
    if isinstance(data, list):
        return [camelize(value) for value in data]
    return data


def success(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": jsonable_encoder(camelize(data))},
    )


def failure(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FulfillmentError)
    async def fulfillment_error(request: Request, exc: FulfillmentError) -> JSONResponse:
        logger.info("Request rejected", path=request.url.path, code=exc.code, message=exc.message)
        return failure(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return failure(400, "VALIDATION_ERROR", "Validation failed", exc.messages)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return failure(400, "VALIDATION_ERROR", "Invalid request", exc.errors())

    @app.exception_handler(ObjectNotFoundError)
    async def not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
        return failure(404, "NOT_FOUND", "Resource not found", {"reason": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path)
        error = InternalError("An unexpected error occurred")
        return failure(error.status_code, error.code, error.message)
