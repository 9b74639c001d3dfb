"""
HTTP middleware: correlation ids, request logging and HTTP metrics.

Both middlewares leave the metrics endpoint alone so scrapes do not show up in
logs or in their own counters.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from . import metrics
from .context import reset_correlation_id, set_correlation_id
from .errors import error_response
from .ids import new_id

logger = logging.getLogger("http")

CORRELATION_HEADER = "X-Correlation-ID"


def route_template(request: Request) -> str:
    """
    Path template of the matching route (`/cars/{car_id}`), so metric labels
    do not grow with every id.
    """
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Reuse X-Correlation-ID (or X-Request-ID) from the caller, else mint a new
    id. The id is bound for the lifetime of the request and echoed back.
    """

    def __init__(self, app, metrics_path: str = "/metrics"):
        super().__init__(app)
        self.metrics_path = metrics_path

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == self.metrics_path:
            return await call_next(request)

        correlation_id = (
            request.headers.get("x-correlation-id")
            or request.headers.get("x-request-id")
            or new_id()
        )
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log each request/response pair and record HTTP metrics.

    Exceptions that escaped the route handlers end here: they are logged with
    their trace and answered with a generic 500 body.
    """

    def __init__(self, app, metrics_path: str = "/metrics"):
        super().__init__(app)
        self.metrics_path = metrics_path

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == self.metrics_path:
            return await call_next(request)

        method = request.method
        route = route_template(request)
        metrics.http_requests_in_progress.labels(method, route).inc()
        logger.info(
            "HTTP Request",
            extra={
                "method": method,
                "url": str(request.url),
                "query": dict(request.query_params),
                "ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            },
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception",
                extra={"method": method, "path": request.url.path},
            )
            response = error_response(request, 500, "Internal server error")
        finally:
            metrics.http_requests_in_progress.labels(method, route).dec()

        duration = time.perf_counter() - start
        metrics.record_http_request(method, route, response.status_code, duration)
        logger.info(
            "HTTP Response",
            extra={
                "method": method,
                "url": str(request.url),
                "status_code": response.status_code,
                "response_time_ms": round(duration * 1000, 2),
            },
        )
        return response
