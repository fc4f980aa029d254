"""Exception handlers mapping application errors to JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.exceptions import StoreError, TaskManagerException

logger = logging.getLogger(__name__)

_ERROR_CODE_STATUS: dict[str, int] = {
    "RESOURCE_NOT_FOUND": 404,
    "VALIDATION_ERROR": 422,
    "STORE_ERROR": 503,
    "FETCH_ERROR": 502,
}


def _task_manager_exception_handler(
    request: Request, exc: TaskManagerException
) -> JSONResponse:
    status = _ERROR_CODE_STATUS.get(exc.error_code, 400)
    if isinstance(exc, StoreError):
        logger.error(
            "store.error",
            exc_info=exc.__cause__ or exc,
            extra={"event": "store.error", "operation": exc.operation},
        )
    return JSONResponse(status_code=status, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskManagerException, _task_manager_exception_handler)
