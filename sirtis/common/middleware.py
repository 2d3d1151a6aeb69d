"""HTTP middleware: request ids, timing and access logging."""

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from sirtis.common.logging_config import generate_request_id, set_request_id, set_user_id

logger = logging.getLogger(__name__)

# Health checks and docs are not worth a log line each.
SKIP_LOGGING_PATHS = {
    "/api/v1/health",
    "/api/docs",
    "/api/redoc",
    "/openapi.json",
}

SLOW_REQUEST_MS = 1000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, log its outcome, echo the id back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_user_id("")

        path = request.url.path
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        if path not in SKIP_LOGGING_PATHS:
            level = logging.WARNING if duration_ms > SLOW_REQUEST_MS else logging.INFO
            logger.log(
                level,
                "%s %s -> %s (%.1fms)",
                request.method,
                path,
                response.status_code,
                duration_ms,
                extra={
                    "http_method": request.method,
                    "http_path": path,
                    "http_status": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )

        response.headers["X-Request-ID"] = request_id
        return response
