"""
Shared FastAPI dependencies.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from .config import Config, get_config
from .errors import FeatureDisabledError

_FEATURE_LABELS = {
    "bulk_operations": "Bulk operations",
    "car_transfer": "Car transfer",
    "user_registration_with_cars": "User registration with cars",
}


def app_config(request: Request) -> Config:
    """
    Config the serving app was built with (`create_app(config)`).
    """
    config = getattr(request.app.state, "config", None)
    return config if isinstance(config, Config) else get_config()


def require_feature(name: str) -> Callable[[Request], None]:
    """
    Dependency that answers 403 while `features.<name>` is switched off.

        @router.post("/cars/bulk", dependencies=[Depends(require_feature("bulk_operations"))])
    """
    if name not in _FEATURE_LABELS:
        raise ValueError(f"Unknown feature flag: {name}")

    def _check(request: Request) -> None:
        if not app_config(request).features.get(name, True):
            raise FeatureDisabledError(f"{_FEATURE_LABELS[name]} is disabled")

    return _check
