"""
Per-request correlation id.

The id lives in a ContextVar, so every asyncio task spawned while handling a
request sees the id of that request and nothing else.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

NO_CORRELATION_ID = "no-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str:
    return _correlation_id.get() or NO_CORRELATION_ID


def set_correlation_id(value: str) -> Token:
    return _correlation_id.set(value)


def reset_correlation_id(token: Token) -> None:
    _correlation_id.reset(token)
