"""
Car API schemas (request/response models).
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

LICENSE_PLATE_PATTERN = r"^[A-Z0-9-]+$"


def max_model_year() -> int:
    return date.today().year + 1


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _YearBounded(_Strict):
    @field_validator("year", check_fields=False)
    @classmethod
    def _year_not_in_future(cls, value: int | None) -> int | None:
        if value is not None and value > max_model_year():
            raise ValueError(f"year must not be greater than {max_model_year()}")
        return value


class CarRegistration(_YearBounded):
    """
    A car inside a user registration payload (owner is the new user).
    """

    brand: str = Field(..., min_length=2, max_length=100)
    model: str = Field(..., min_length=2, max_length=100)
    year: int = Field(..., ge=1900)
    color: str | None = Field(default=None, min_length=2, max_length=50)
    license_plate: str = Field(..., min_length=5, max_length=20, pattern=LICENSE_PLATE_PATTERN)


class CreateCarRequest(CarRegistration):
    user_id: UUID


class UpdateCarRequest(_YearBounded):
    brand: str | None = Field(default=None, min_length=2, max_length=100)
    model: str | None = Field(default=None, min_length=2, max_length=100)
    year: int | None = Field(default=None, ge=1900)
    color: str | None = Field(default=None, min_length=2, max_length=50)
    license_plate: str | None = Field(default=None, min_length=5, max_length=20, pattern=LICENSE_PLATE_PATTERN)
    is_available: bool | None = None


class TransferCarRequest(_Strict):
    car_id: UUID
    from_user_id: UUID
    to_user_id: UUID


class BulkTransferCarsRequest(_Strict):
    car_ids: list[UUID] = Field(..., min_length=1)
    from_user_id: UUID
    to_user_id: UUID


class CarQuery(BaseModel):
    user_id: UUID | None = None
    brand: str | None = None
    model: str | None = None
    color: str | None = None
    min_year: int | None = None
    max_year: int | None = None
    page: int = 1
    limit: int = 10
    sort_by: str = "id"
    sort_order: str = "ASC"

