"""
Layered YAML configuration.

Load order:
1) `<CONFIG_DIR>/application.yaml`
2) `<CONFIG_DIR>/application-<APP_ENV>.yaml` (deep-merged on top)
3) `${ENV_VAR:default}` placeholders are replaced from the environment.

CONFIG_DIR defaults to `./config`, APP_ENV to `development`.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

_PLACEHOLDER = re.compile(r"\$\{([^:}]+)(?::([^}]*))?\}")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce(value: str) -> Any:
    if value == "true":
        return True
    if value == "false":
        return False
    if value == "":
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _substitute(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _substitute(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(v) for v in value]
    if not isinstance(value, str) or "${" not in value:
        return value

    def replace(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        return env_value if env_value is not None else (match.group(2) or "")

    return _coerce(_PLACEHOLDER.sub(replace, value))


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def load_raw_config(config_dir: str | Path | None = None, environment: str | None = None) -> dict[str, Any]:
    directory = Path(config_dir or os.environ.get("CONFIG_DIR", "config"))
    env = (environment or os.environ.get("APP_ENV", "development")).strip() or "development"

    config = _read_yaml(directory / "application.yaml")
    config = _deep_merge(config, _read_yaml(directory / f"application-{env}.yaml"))
    return _substitute(config)


class Config:
    """
    Typed read access over the merged configuration tree.

    Keys use dot notation: `config.get("database.pool.max", 10)`.
    """

    def __init__(self, data: dict[str, Any] | None = None):
        self._data = data or {}

    def get(self, path: str, default: Any = None) -> Any:
        value: Any = self._data
        for key in path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return default if value is None else value

    def get_str(self, path: str, default: str = "") -> str:
        return str(self.get(path, default))

    def get_int(self, path: str, default: int = 0) -> int:
        value = self.get(path, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, path: str, default: bool = False) -> bool:
        value = self.get(path, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"true", "1", "yes"}
        return bool(value)

    def has(self, path: str) -> bool:
        return self.get(path) is not None

    @property
    def application(self) -> dict[str, Any]:
        return {
            "name": self.get_str("application.name", "Fleet API"),
            "version": self.get_str("application.version", "1.0.0"),
            "environment": self.get_str("application.environment", "development"),
            "port": self.get_int("application.port", 3000),
        }

    @property
    def database(self) -> dict[str, Any]:
        return {
            "host": self.get_str("database.host", "localhost"),
            "port": self.get_int("database.port", 5432),
            "user": self.get_str("database.username", "postgres"),
            "password": self.get_str("database.password", ""),
            "database": self.get_str("database.database", "fleet"),
            "min_size": self.get_int("database.pool.min", 2),
            "max_size": self.get_int("database.pool.max", 10),
            "idle_timeout_s": self.get_int("database.pool.idleTimeoutMillis", 30000) / 1000,
            "acquire_timeout_s": self.get_int("database.pool.connectionTimeoutMillis", 2000) / 1000,
        }

    @property
    def logging(self) -> dict[str, Any]:
        return {
            "level": self.get_str("logging.level", "info"),
            "format": self.get_str("logging.format", "json"),
            "file_enabled": self.get_bool("logging.file.enabled", False),
            "file_path": self.get_str("logging.file.path", "logs"),
            "file_max_bytes": self.get_int("logging.file.maxSize", 5 * 1024 * 1024),
            "file_backups": self.get_int("logging.file.maxFiles", 5),
        }

    @property
    def scheduler(self) -> dict[str, Any]:
        return {
            "enabled": self.get_bool("scheduler.enabled", True),
            "seeding_enabled": self.get_bool("scheduler.dataSeeding.enabled", True),
            "interval_s": self.get_int("scheduler.dataSeeding.interval", 30),
            "user_count": self.get_int("scheduler.dataSeeding.userCount", 5),
            "max_cars_per_user": self.get_int("scheduler.dataSeeding.maxCarsPerUser", 50),
        }

    @property
    def cors(self) -> dict[str, Any]:
        origins = self.get_str("cors.origins", "*")
        return {
            "enabled": self.get_bool("cors.enabled", True),
            "origins": ["*"] if origins == "*" else [o.strip() for o in origins.split(",") if o.strip()],
            "credentials": self.get_bool("cors.credentials", True),
        }

    @property
    def metrics(self) -> dict[str, Any]:
        return {
            "enabled": self.get_bool("metrics.enabled", True),
            "path": self.get_str("metrics.path", "/metrics"),
        }

    @property
    def features(self) -> dict[str, bool]:
        return {
            "bulk_operations": self.get_bool("features.bulkOperations", True),
            "car_transfer": self.get_bool("features.carTransfer", True),
            "user_registration_with_cars": self.get_bool("features.userRegistrationWithCars", True),
        }

    def is_production(self) -> bool:
        return self.application["environment"] == "production"


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config(load_raw_config())
