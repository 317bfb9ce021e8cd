"""Access logging middleware for structured HTTP request/response logging."""

import asyncio
import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint


logger = structlog.get_logger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Logs one structured event per request.

    Reads the RequestContext set by RequestIDMiddleware when present, so the
    error type recorded by the exception handlers lands in the access line.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started_at = time.perf_counter()
        response: Response | None = None
        error_message: str | None = None

        try:
            response = await call_next(request)
        except (Exception, asyncio.CancelledError) as e:
            error_message = str(e)
            raise
        finally:
            context = getattr(request.state, "context", None)
            if context is not None:
                duration_ms = context.duration_ms
                extra = dict(context.metadata)
            else:
                duration_ms = (time.perf_counter() - started_at) * 1000
                extra = {}
            extra.pop("status_code", None)

            common = {
                "request_id": getattr(request.state, "request_id", None) or "unknown",
                "method": request.method,
                "path": str(request.url.path),
                "client_ip": request.client.host if request.client else "unknown",
                "duration_ms": round(duration_ms, 2),
                **extra,
            }
            if response is not None:
                logger.info(
                    "request_complete", status_code=response.status_code, **common
                )
            else:
                logger.error(
                    "request_error",
                    error_message=error_message or "No response generated",
                    **common,
                )

        return response
