from __future__ import annotations

import logging
from time import perf_counter

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from runnmate.ops.events import (
    CORRELATION_ID_HEADER,
    new_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

QUIET_PATHS = frozenset({"/health", "/health/db"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a correlation id to each request and logs its outcome."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or new_correlation_id()
        token = set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id
        path = request.url.path
        start = perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed %s %s",
                request.method,
                path,
                extra={
                    "event_type": "api.request.failed",
                    "correlation_id": correlation_id,
                    "ops_payload": {"duration_ms": int((perf_counter() - start) * 1000)},
                },
            )
            raise
        else:
            duration_ms = int((perf_counter() - start) * 1000)
            response.headers["X-Request-Id"] = correlation_id
            if path not in QUIET_PATHS:
                level = logging.ERROR if response.status_code >= 500 else logging.INFO
                logger.log(
                    level,
                    "%s %s -> %d (%dms)",
                    request.method,
                    path,
                    response.status_code,
                    duration_ms,
                    extra={
                        "event_type": "api.request.completed",
                        "correlation_id": correlation_id,
                        "ops_payload": {"status_code": response.status_code, "duration_ms": duration_ms},
                    },
                )
            return response
        finally:
            reset_correlation_id(token)
