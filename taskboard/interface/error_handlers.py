"""Map store errors to HTTP responses carrying an ErrorResponse body."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskboard.core.config import constants, settings
from taskboard.core.errors import (
    AlreadyMemberError,
    TaskboardError,
    classify_error_with_response,
)


logger = logging.getLogger(__name__)


def status_for(exception: Exception) -> int:
    """HTTP status code for a store error."""
    if isinstance(exception, AlreadyMemberError):
        return constants.HTTP_CONFLICT
    if isinstance(exception, KeyError):
        return constants.HTTP_NOT_FOUND
    if isinstance(exception, PermissionError):
        return constants.HTTP_FORBIDDEN
    if isinstance(exception, (ValueError, IndexError)):
        return constants.HTTP_UNPROCESSABLE
    return constants.HTTP_SERVER_ERROR


async def handle_store_error(request: Request, exc: Exception) -> JSONResponse:
    """Render a store error as JSON."""
    status_code = status_for(exc)
    response = classify_error_with_response(exc, settings.locale)
    if status_code >= constants.HTTP_SERVER_ERROR:
        logger.error("Request failed", extra={"path": request.url.path, "code": response.code, "error": str(exc)})
    else:
        logger.info("Request rejected", extra={"path": request.url.path, "code": response.code})
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers for the store's exceptions."""
    app.add_exception_handler(TaskboardError, handle_store_error)
    app.add_exception_handler(IndexError, handle_store_error)
