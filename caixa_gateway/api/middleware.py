"""FastAPI middleware for request tracing and metrics"""

import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from caixa_gateway.infrastructure.observability.metrics import request_duration_histogram

logger = logging.getLogger(__name__)

UNMEASURED_PATHS = {"/metrics"}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Carry the caller's X-Request-ID through the request, or mint one"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.debug(
            "Request served",
            extra={
                "request_id": request_id,
                "user_id": request.headers.get("X-User-Id"),
                "path": request.url.path,
                "status": response.status_code,
            },
        )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request latency per route template, skipping metrics scrapes"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNMEASURED_PATHS:
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)

        # Templated path keeps entry and schedule ids out of the label set
        route = request.scope.get("route")
        request_duration_histogram.labels(
            method=request.method,
            endpoint=getattr(route, "path", "unmatched"),
            status=response.status_code,
        ).observe(time.time() - start_time)

        return response
