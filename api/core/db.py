"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...

Every pooled call is timed, logged at debug level and recorded in the
`db_query_duration_seconds` / `db_queries_total` metrics.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from . import metrics
from .config import Config
from .errors import InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_pool: asyncpg.Pool | None = None
_acquire_timeout_s: float = 2.0


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str | None:
    """
    DATABASE_URL wins over the `database.*` config block when set.
    """
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        return None
    return _sanitize_database_url(url)


async def init_pool(config: Config) -> None:
    global _pool, _acquire_timeout_s
    if _pool is not None:
        return None

    settings = config.database
    _acquire_timeout_s = settings["acquire_timeout_s"]
    connect_kwargs: dict[str, Any]
    dsn = database_url()
    if dsn:
        connect_kwargs = {"dsn": dsn}
    else:
        connect_kwargs = {
            "host": settings["host"],
            "port": settings["port"],
            "user": settings["user"],
            "password": settings["password"],
            "database": settings["database"],
        }

    _pool = await asyncpg.create_pool(
        **connect_kwargs,
        min_size=settings["min_size"],
        max_size=settings["max_size"],
        max_inactive_connection_lifetime=settings["idle_timeout_s"],
        command_timeout=30,
    )
    refresh_pool_metrics()
    logger.info(
        "Database connection pool initialized",
        extra={
            "host": settings["host"] if not dsn else urlsplit(dsn).hostname,
            "database": settings["database"] if not dsn else urlsplit(dsn).path.lstrip("/"),
            "pool_min": settings["min_size"],
            "pool_max": settings["max_size"],
        },
    )


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None
    logger.info("Database connection pool closed")


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


def pool_stats() -> dict[str, int]:
    """
    Current pool accounting; also pushes it into the connection gauges.
    """
    p = pool()
    size = p.get_size()
    idle = p.get_idle_size()
    stats = {"size": size, "idle": idle, "active": size - idle}
    metrics.set_pool_connections(active=stats["active"], idle=idle)
    return stats


def refresh_pool_metrics() -> None:
    if _pool is not None:
        pool_stats()


def operation_of(sql: str) -> str:
    head = sql.lstrip().split(None, 1)
    verb = head[0].upper() if head else ""
    return verb if verb in {"SELECT", "INSERT", "UPDATE", "DELETE"} else "OTHER"


def row_count(status: str | None) -> int:
    """
    asyncpg returns command tags like "DELETE 3" / "UPDATE 0".
    """
    try:
        return int((status or "").rsplit(" ", 1)[-1])
    except ValueError:
        return 0


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


@asynccontextmanager
async def connection() -> AsyncIterator[asyncpg.Connection]:
    """
    Borrow one pooled connection. Waiting for a free connection is bounded by
    `database.pool.connectionTimeoutMillis`; a timeout is not retried.
    """
    p = pool()
    try:
        conn = await p.acquire(timeout=_acquire_timeout_s)
    except asyncio.TimeoutError as exc:
        logger.error("Timed out acquiring a database connection", extra={"timeout_s": _acquire_timeout_s})
        raise InternalError("Timed out acquiring a database connection.") from exc

    refresh_pool_metrics()
    try:
        yield conn
    finally:
        await p.release(conn)
        refresh_pool_metrics()


async def _timed(sql: str, args: tuple[Any, ...], call: Callable[[asyncpg.Connection], Awaitable[T]]) -> T:
    operation = operation_of(sql)
    start = time.perf_counter()
    try:
        async with connection() as conn:
            result = await call(conn)
    except Exception as exc:
        duration = time.perf_counter() - start
        logger.error(
            "Database query failed",
            extra={
                "error_name": type(exc).__name__,
                "error_message": str(exc),
                "query": sql,
                "params": list(args),
            },
        )
        metrics.record_db_query(operation, duration, False)
        raise

    duration = time.perf_counter() - start
    logger.debug(
        "Database query",
        extra={"query": sql, "params": list(args), "duration_ms": round(duration * 1000, 2)},
    )
    metrics.record_db_query(operation, duration, True)
    return result


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    row = await _timed(sql, args, lambda conn: conn.fetchrow(sql, *args))
    return _record_to_dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    rows = await _timed(sql, args, lambda conn: conn.fetch(sql, *args))
    return [_record_to_dict(r) for r in rows]


async def execute(sql: str, *args: Any) -> str:
    """
    Run a statement (INSERT/UPDATE/DELETE/DDL). Returns the command tag.
    """
    return await _timed(sql, args, lambda conn: conn.execute(sql, *args))


async def run_transaction(work: Callable[[asyncpg.Connection], Awaitable[T]]) -> T:
    """
    Run `work(conn)` inside BEGIN/COMMIT on one dedicated connection.

    Any exception rolls the transaction back and is re-raised unchanged. The
    connection goes back to the pool either way.
    """
    start = time.perf_counter()
    try:
        async with connection() as conn:
            async with conn.transaction():
                logger.debug("Transaction started")
                result = await work(conn)
    except Exception:
        duration = time.perf_counter() - start
        logger.error("Transaction failed", exc_info=True, extra={"duration_ms": round(duration * 1000, 2)})
        metrics.record_db_query("TRANSACTION", duration, False)
        raise

    duration = time.perf_counter() - start
    logger.debug("Transaction committed", extra={"duration_ms": round(duration * 1000, 2)})
    metrics.record_db_query("TRANSACTION", duration, True)
    return result
