"""Error handling for the Threadly API.

Renders every ThreadlyError subclass from its own error_type, status_code
and details, so routes simply let domain errors propagate.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from threadly.exceptions import ErrorType, ThreadlyError


logger = get_logger(__name__)


def _record_error(request: Request, status_code: int, error_type: str) -> None:
    """Note the rendered error on the request context for access logging."""
    context = getattr(request.state, "context", None)
    if context is not None:
        context.metadata["status_code"] = status_code
        context.metadata["error_type"] = str(error_type)


def build_error_response(
    status_code: int,
    error_type: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build standardized error response."""
    error: dict[str, Any] = {"type": error_type, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


def setup_error_handlers(app: FastAPI) -> None:
    """Setup error handlers for the FastAPI application."""

    @app.exception_handler(ThreadlyError)
    async def threadly_error_handler(request: Request, exc: ThreadlyError) -> JSONResponse:
        """Handle all ThreadlyError subclasses using their built-in attributes."""
        error_type = str(exc.error_type)
        _record_error(request, exc.status_code, error_type)

        log_kwargs: dict[str, Any] = {
            "error_type": error_type,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "request_method": request.method,
            "request_url": str(request.url.path),
        }
        if exc.status_code >= 500:
            logger.error(type(exc).__name__, **log_kwargs)
        else:
            logger.warning(type(exc).__name__, **log_kwargs)

        headers = None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        return build_error_response(
            exc.status_code, error_type, exc.message, exc.details, headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        _record_error(request, status.HTTP_400_BAD_REQUEST, ErrorType.INVALID_REQUEST)
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        message = first.get("msg", "Invalid request")
        if field:
            message = f"{field}: {message}"
        return build_error_response(
            status.HTTP_400_BAD_REQUEST,
            ErrorType.INVALID_REQUEST,
            message,
            {"field": field} if field else None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle Starlette and FastAPI HTTP exceptions."""
        _record_error(request, exc.status_code, "http_error")
        if exc.status_code == 404:
            logger.debug("http_404", request_url=str(request.url.path))
        else:
            logger.warning(
                "http_exception",
                status_code=exc.status_code,
                error_message=exc.detail,
                request_url=str(request.url.path),
            )
        return build_error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle all other unhandled exceptions."""
        _record_error(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorType.INTERNAL_SERVER
        )
        logger.error(
            "unhandled_exception",
            error_message=str(exc),
            request_method=request.method,
            request_url=str(request.url.path),
            exc_info=True,
        )
        return build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorType.INTERNAL_SERVER,
            "An internal server error occurred",
        )
