"""Translate ordering errors into the ``{"success": false, "error": ...}`` envelope."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.errors import OrderingError

logger = structlog.get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _flatten(messages) -> str:
    """Join protean's ``{field: [messages]}`` into a single human-readable line."""
    if isinstance(messages, dict):
        parts = []
        for values in messages.values():
            parts.extend(values if isinstance(values, list) else [values])
        return "; ".join(str(part) for part in parts)
    return str(messages)


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    logger.info("Request rejected", path=request.url.path, status_code=exc.status_code, error=exc.message)
    return error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    message = _flatten(exc.messages)
    logger.info("Request failed validation", path=request.url.path, error=message)
    return error_response(400, message)


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return error_response(404, "Recurso no encontrado")


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
        problems.append(f"{location}: {error.get('msg')}")
    return error_response(400, "Datos inválidos: " + "; ".join(problems))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return error_response(500, "Error interno del servidor")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
