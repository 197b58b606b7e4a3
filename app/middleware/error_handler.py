"""Global error handlers for the application."""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.constants import INVALID_INPUT_MESSAGE
from app.utils.db_errors import get_db_error_message

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))


def first_validation_message(errors) -> str:
    """Pick the first field message, preferring the text raised by our own validators."""
    for error in errors:
        ctx_error = (error.get("ctx") or {}).get("error")
        if ctx_error:
            return str(ctx_error)
        field = ".".join(str(p) for p in error.get("loc", ())[1:]) or None
        kind = error.get("type")
        if kind == "missing":
            return f"Brak wymaganego pola: {field}." if field else INVALID_INPUT_MESSAGE
        if kind == "extra_forbidden":
            return f"Nieoczekiwane pole: {field}." if field else INVALID_INPUT_MESSAGE
        if error.get("msg"):
            return error["msg"]
    return INVALID_INPUT_MESSAGE


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": first_validation_message(exc.errors())})


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    info = get_db_error_message(exc)
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": info.message})
