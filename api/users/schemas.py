"""
User API schemas (request/response models).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from cars.schemas import CarRegistration


class _Strict(BaseModel):
    # Unknown fields are rejected, not silently dropped.
    model_config = ConfigDict(extra="forbid")


class CreateUserRequest(_Strict):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    age: int | None = Field(default=None, ge=1, le=150)


class UpdateUserRequest(_Strict):
    email: EmailStr | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    age: int | None = Field(default=None, ge=1, le=150)
    is_active: bool | None = None


class RegisterUserWithCarsRequest(CreateUserRequest):
    cars: list[CarRegistration]


class UserQuery(BaseModel):
    name: str | None = None
    email: str | None = None
    min_age: int | None = None
    max_age: int | None = None
    page: int = 1
    limit: int = 10
    sort_by: str = "id"
    sort_order: str = "ASC"

