"""Translate kanban repository errors into JSON HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from kanban_repo import (
    ConcurrentModificationError,
    InvariantViolationError,
    KanbanError,
    NotFoundError,
    PersistenceError,
)

STATUS_BY_ERROR = {
    NotFoundError: 404,
    InvariantViolationError: 400,
    ConcurrentModificationError: 409,
    PersistenceError: 500,
}


def _status_for(exc: KanbanError) -> int:
    for error_type, status in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 500


async def kanban_error_handler(request: Request, exc: KanbanError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error("{method} {path} failed: {error}", method=request.method, path=request.url.path, error=exc)
        detail = "Internal server error"
    else:
        logger.debug("{method} {path} -> {status}: {error}", method=request.method, path=request.url.path, status=status, error=exc)
        detail = str(exc)
    return JSONResponse(status_code=status, content={"detail": detail})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(KanbanError, kanban_error_handler)
