from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from mongoengine.errors import ValidationError as DocumentValidationError

from nexus.utils.errors import NexusError
from nexus.utils.logging import get_logger


logger = get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _validation_message(errors: list[dict]) -> str:
    messages = []
    for error in errors:
        msg = str(error.get("msg", "Invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        else:
            field = ".".join(str(part) for part in error.get("loc", ())[1:])
            if field:
                msg = f"{field}: {msg}"
        messages.append(msg)
    return ". ".join(messages) or "Validation failed"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NexusError)
    async def handle_nexus_error(request: Request, exc: NexusError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "request_failed",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error=type(exc).__name__,
        )
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return error_response(400, _validation_message(exc.errors()))

    @app.exception_handler(DocumentValidationError)
    async def handle_document_validation(request: Request, exc: DocumentValidationError):
        return error_response(400, exc.message or "Validation failed")

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path, method=request.method)
        return error_response(500, "Internal server error")
