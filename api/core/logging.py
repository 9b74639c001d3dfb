"""
Logging setup.

Every record is stamped with the current correlation id. Two output formats:
- json:   one JSON object per line (default, for log shippers)
- pretty: human-readable lines for local development

Structured fields are passed with `extra=`, e.g.
`logger.info("Car created", extra={"car_id": car_id})`.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .context import get_correlation_id

# Attributes every LogRecord has; anything else came from `extra=`.
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "correlation_id"}


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["trace"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


class PrettyFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(name)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = _extra_fields(record)
        if extra:
            line += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return line


def setup_logging(
    *,
    level: str = "info",
    fmt: str = "json",
    file_enabled: bool = False,
    file_path: str = "logs",
    file_max_bytes: int = 5 * 1024 * 1024,
    file_backups: int = 5,
) -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    correlation_filter = CorrelationIdFilter()

    console = logging.StreamHandler()
    console.setFormatter(PrettyFormatter() if fmt == "pretty" else JsonFormatter())
    console.addFilter(correlation_filter)
    root.addHandler(console)

    if file_enabled:
        directory = Path(file_path)
        directory.mkdir(parents=True, exist_ok=True)

        combined = logging.handlers.RotatingFileHandler(
            directory / "combined.log", maxBytes=file_max_bytes, backupCount=file_backups
        )
        errors = logging.handlers.RotatingFileHandler(
            directory / "error.log", maxBytes=file_max_bytes, backupCount=file_backups
        )
        errors.setLevel(logging.ERROR)
        for handler in (combined, errors):
            handler.setFormatter(JsonFormatter())
            handler.addFilter(correlation_filter)
            root.addHandler(handler)

    # uvicorn's access log duplicates the request middleware.
    logging.getLogger("uvicorn.access").disabled = True
