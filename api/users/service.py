"""
User business logic.

Uniqueness of email is checked here before writing. The database also holds a
UNIQUE constraint, so a concurrent writer that slips past the pre-check still
ends as a Conflict instead of a duplicate row.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from cars import repository as car_repository
from core.errors import ConflictError
from core.metrics import track_operation

from . import queries, repository, schemas

logger = logging.getLogger(__name__)


async def find_all(query: schemas.UserQuery) -> dict[str, Any]:
    users, total = await repository.find_all(query)
    return {"users": users, "total": total}


async def find_one(user_id: UUID | str) -> dict[str, Any]:
    return await repository.find_by_id(user_id)


async def find_one_with_cars(user_id: UUID | str) -> dict[str, Any]:
    return await repository.find_by_id_with_cars(user_id)


async def ensure_exists(user_ids: list[UUID | str]) -> None:
    """
    Raise NotFoundError for the first id that has no user row.
    """
    for user_id in dict.fromkeys(str(u) for u in user_ids):
        await repository.find_by_id(user_id)


async def create(payload: schemas.CreateUserRequest) -> dict[str, Any]:
    existing = await repository.find_by_email(payload.email)
    if existing is not None:
        raise ConflictError("Email already exists")
    return await repository.create(payload)


async def update(user_id: UUID | str, payload: schemas.UpdateUserRequest) -> dict[str, Any]:
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in queries.NULLABLE_COLUMNS
    }
    email = changes.get("email")
    if email:
        existing = await repository.find_by_email(email)
        if existing is not None and str(existing["id"]) != str(user_id):
            raise ConflictError("Email already exists")
    return await repository.update(user_id, changes)


async def remove(user_id: UUID | str) -> None:
    await repository.delete(user_id)


def _first_duplicate(values: list[str]) -> str | None:
    seen: set[str] = set()
    for value in values:
        if value in seen:
            return value
        seen.add(value)
    return None


async def create_many(users: list[schemas.CreateUserRequest]) -> list[dict[str, Any]]:
    emails = [u.email for u in users]
    duplicate = _first_duplicate(emails)
    if duplicate is not None:
        raise ConflictError(f"Duplicate email in request: {duplicate}")

    taken = await repository.existing_emails(emails)
    if taken:
        raise ConflictError(f"Email already exists: {sorted(taken)[0]}")

    return await repository.create_many(users)


async def register_user_with_cars(payload: schemas.RegisterUserWithCarsRequest) -> dict[str, Any]:
    """
    Create a user and all of its cars atomically.
    """
    async with track_operation(
        "users.register_user_with_cars",
        email=payload.email,
        car_count=len(payload.cars),
    ):
        existing = await repository.find_by_email(payload.email)
        if existing is not None:
            logger.warning(
                "User registration failed - email already exists",
                extra={"email": payload.email},
            )
            raise ConflictError("Email already exists")

        plates = [car.license_plate for car in payload.cars]
        duplicate = _first_duplicate(plates)
        if duplicate is not None:
            raise ConflictError(f"Duplicate license plate in request: {duplicate}")
        if await car_repository.existing_license_plates(plates):
            raise ConflictError("License plate already exists")

        logger.info(
            "Registering user with cars",
            extra={"email": payload.email, "car_count": len(payload.cars)},
        )
        user = schemas.CreateUserRequest(email=payload.email, name=payload.name, age=payload.age)
        result = await repository.create_user_with_cars(
            user,
            [car.model_dump() for car in payload.cars],
        )
        logger.info(
            "User registered with cars successfully",
            extra={"user_id": str(result["id"]), "car_count": len(result["cars"])},
        )
        return result
