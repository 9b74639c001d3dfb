"""
Prometheus metrics.

All collectors live in a dedicated registry (not the process-global default)
so `/metrics` exposes exactly what this service records.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "route", "status_code"],
    registry=REGISTRY,
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["method", "route", "status_code"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5),
    registry=REGISTRY,
)
http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "route"],
    registry=REGISTRY,
)
db_query_duration_seconds = Histogram(
    "db_query_duration_seconds",
    "Duration of database queries in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1),
    registry=REGISTRY,
)
db_queries_total = Counter(
    "db_queries_total",
    "Total number of database queries",
    ["operation", "status"],
    registry=REGISTRY,
)
operation_duration_seconds = Histogram(
    "operation_duration_seconds",
    "Duration of business operations in seconds",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10),
    registry=REGISTRY,
)
operations_total = Counter(
    "operations_total",
    "Total number of business operations",
    ["operation", "status"],
    registry=REGISTRY,
)
db_active_connections = Gauge(
    "db_active_connections",
    "Number of database connections currently checked out",
    registry=REGISTRY,
)
db_idle_connections = Gauge(
    "db_idle_connections",
    "Number of idle database connections in the pool",
    registry=REGISTRY,
)


def _status(success: bool) -> str:
    return "success" if success else "error"


def record_http_request(method: str, route: str, status_code: int, duration_s: float) -> None:
    http_requests_total.labels(method, route, str(status_code)).inc()
    http_request_duration_seconds.labels(method, route, str(status_code)).observe(duration_s)


def record_db_query(operation: str, duration_s: float, success: bool) -> None:
    db_query_duration_seconds.labels(operation).observe(duration_s)
    db_queries_total.labels(operation, _status(success)).inc()


def set_pool_connections(*, active: int, idle: int) -> None:
    db_active_connections.set(active)
    db_idle_connections.set(idle)


def render() -> tuple[bytes, str]:
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


@asynccontextmanager
async def track_operation(operation: str, **metadata: Any) -> AsyncIterator[None]:
    """
    Time a business operation, log its outcome and record it.

        async with track_operation("cars.transfer", car_id=car_id):
            ...
    """
    logger.debug("Started tracking: %s", operation, extra={"operation": operation, **metadata})
    start = time.perf_counter()
    success = False
    error: str | None = None
    try:
        yield
        success = True
    except Exception as exc:
        error = str(exc)
        raise
    finally:
        duration = time.perf_counter() - start
        operation_duration_seconds.labels(operation).observe(duration)
        operations_total.labels(operation, _status(success)).inc()
        fields: dict[str, Any] = {
            "operation": operation,
            "duration_ms": round(duration * 1000, 2),
            "success": success,
            **metadata,
        }
        if error is not None:
            fields["error"] = error
        logger.info("Completed: %s", operation, extra=fields)
