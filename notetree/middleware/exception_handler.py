"""Exception handler for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import NoteTreeException

logger = logging.getLogger(__name__)


async def notetree_exception_handler(request: Request, exc: NoteTreeException) -> JSONResponse:
    """Log a NoteTreeException and render it as ``exc.to_dict()``.

    Client errors (4xx) are logged at WARNING, everything else at ERROR.
    """
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        level,
        f"NoteTreeException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
