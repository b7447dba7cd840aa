"""
Application Middleware for the Channel & Session API.

Cross-cutting request handling built on Starlette's `BaseHTTPMiddleware`.

Key Middleware Components:
- `CorrelationMiddleware`: Assigns a correlation ID to every request (reusing
  `X-Correlation-ID` / `X-Request-ID` when the client sends one), exposes it to
  the logging system, and echoes it in the response headers.
- `ErrorHandlingMiddleware`: Last line of defense. Application errors that
  escaped a handler are mapped with `to_http_exception`; anything else becomes
  a generic 500 body. No exception text reaches the client.
- `PerformanceMiddleware`: Logs request start and completion, adds an
  `X-Process-Time` header and warns about slow requests.

`main.py` registers them so that correlation runs outermost.
"""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging_config import set_correlation_id, get_logger
from .exceptions import ChannelAPIException, to_http_exception

logger = get_logger("core.middleware")

SLOW_REQUEST_SECONDS = 1.0


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized error handling"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except ChannelAPIException as e:
            logger.error(
                f"Unhandled application error: {e.error_code}",
                extra={
                    "error_type": type(e).__name__,
                    "error_code": e.error_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            http_exc = to_http_exception(e)
            return JSONResponse(
                status_code=http_exc.status_code,
                content={
                    "detail": http_exc.detail,
                    "correlation_id": getattr(request.state, "correlation_id", None),
                },
            )

        except Exception as e:
            logger.error(
                f"Unexpected error: {type(e).__name__}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "detail": {
                        "error_code": "INTERNAL_ERROR",
                        "message": "An unexpected error occurred",
                        "details": {},
                    },
                    "correlation_id": getattr(request.state, "correlation_id", None),
                },
            )


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for performance monitoring and logging"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            },
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            },
        )

        if process_time > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "process_time_ms": round(process_time * 1000, 2),
                },
            )

        return response
