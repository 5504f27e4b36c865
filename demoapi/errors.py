"""
Error taxonomy and the uniform error body.

Handlers resolve their own failures by raising ``APIError``; the exception
handlers registered in ``create_app`` turn it (and framework errors such as
unknown routes or malformed requests) into::

    {"status": "error", "message": "<human readable message>"}
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """A handler-level failure that maps directly onto an HTTP response."""

    def __init__(self, status_code: int, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        # Internal detail for the logs; never sent to the client.
        self.detail = detail


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the standard error body."""
    logger.debug("Sending error response | status=%d | message=%s", status_code, message)
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.detail:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed | %s %s | status=%d | error=%s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.detail,
        )
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Unknown routes, wrong methods and other framework-raised HTTP errors."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = error_response(exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Collapse FastAPI's 422 validation report into a 400 with one message."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"validation error: {location}: {first.get('msg', 'invalid value')}"
    else:
        message = "validation error"
    return error_response(status.HTTP_400_BAD_REQUEST, message)
