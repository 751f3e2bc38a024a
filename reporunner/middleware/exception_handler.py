"""Exception handler middleware for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import AuthenticationError, RunnerException

logger = logging.getLogger(__name__)


async def runner_exception_handler(request: Request, exc: RunnerException) -> JSONResponse:
    """
    Handle custom exceptions and return structured JSON responses.

    Args:
        request: FastAPI request object
        exc: RunnerException instance

    Returns:
        JSONResponse with error details
    """
    logger.warning(
        f"RunnerException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": 'Basic realm="reporunner"'}

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )
