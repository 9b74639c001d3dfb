"""
Application error taxonomy.

Services raise these; `main.py` turns them into the JSON error body:
{"statusCode", "timestamp", "path", "method", "message"}.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class AppError(RuntimeError):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class FeatureDisabledError(AppError):
    status_code = 403


class InternalError(AppError):
    status_code = 500


def error_body(request: Request, status_code: int, message: Any) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
        "message": message,
    }


def error_response(request: Request, status_code: int, message: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(request, status_code, message))


# Unique constraints declared in db/schema.sql.
_UNIQUE_MESSAGES = {
    "users_email_key": "Email already exists",
    "cars_license_plate_key": "License plate already exists",
}


def unique_violation(exc: Exception) -> ConflictError:
    """
    Map a driver unique-violation error to the matching Conflict message.
    """
    constraint = str(getattr(exc, "constraint_name", "") or "")
    return ConflictError(_UNIQUE_MESSAGES.get(constraint, "Resource already exists"))
