"""
Car business logic: owner checks, plate uniqueness, ownership transfer.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from core.errors import ConflictError
from core.metrics import track_operation
from users import service as user_service

from . import queries, repository, schemas

logger = logging.getLogger(__name__)


async def find_all(query: schemas.CarQuery) -> dict[str, Any]:
    cars, total = await repository.find_all(query)
    return {"cars": cars, "total": total}


async def find_one(car_id: UUID | str) -> dict[str, Any]:
    return await repository.find_by_id(car_id)


async def find_by_user_id(user_id: UUID | str) -> list[dict[str, Any]]:
    await user_service.find_one(user_id)
    return await repository.find_by_user_id(user_id)


async def stats_by_user(user_id: UUID | str) -> dict[str, Any]:
    await user_service.find_one(user_id)
    return await repository.stats_by_user(user_id)


async def search(term: str) -> list[dict[str, Any]]:
    return await repository.search(term)


async def create(payload: schemas.CreateCarRequest) -> dict[str, Any]:
    await user_service.find_one(payload.user_id)

    existing = await repository.find_by_license_plate(payload.license_plate)
    if existing is not None:
        raise ConflictError("License plate already exists")

    return await repository.create(payload)


async def update(car_id: UUID | str, payload: schemas.UpdateCarRequest) -> dict[str, Any]:
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in queries.NULLABLE_COLUMNS
    }
    plate = changes.get("license_plate")
    if plate:
        existing = await repository.find_by_license_plate(plate)
        if existing is not None and str(existing["id"]) != str(car_id):
            raise ConflictError("License plate already exists")
    return await repository.update(car_id, changes)


async def remove(car_id: UUID | str) -> None:
    await repository.delete(car_id)


async def remove_by_user(user_id: UUID | str) -> int:
    deleted = await repository.delete_by_user_id(user_id)
    logger.info("Deleted cars for user", extra={"user_id": str(user_id), "deleted": deleted})
    return deleted


async def create_many(cars: list[schemas.CreateCarRequest]) -> list[dict[str, Any]]:
    await user_service.ensure_exists([car.user_id for car in cars])

    seen: set[str] = set()
    for car in cars:
        if car.license_plate in seen:
            raise ConflictError(f"Duplicate license plate in request: {car.license_plate}")
        seen.add(car.license_plate)

    taken = await repository.existing_license_plates(list(seen))
    if taken:
        raise ConflictError(f"License plate already exists: {sorted(taken)[0]}")

    return await repository.create_many(cars)


async def transfer_ownership(payload: schemas.TransferCarRequest) -> dict[str, Any]:
    async with track_operation(
        "cars.transfer_ownership",
        car_id=str(payload.car_id),
        from_user_id=str(payload.from_user_id),
        to_user_id=str(payload.to_user_id),
    ):
        await user_service.ensure_exists([payload.from_user_id, payload.to_user_id])

        car = await repository.transfer_ownership(
            payload.car_id,
            payload.from_user_id,
            payload.to_user_id,
        )
        logger.info(
            "Car ownership transferred",
            extra={
                "car_id": str(payload.car_id),
                "from_user_id": str(payload.from_user_id),
                "to_user_id": str(payload.to_user_id),
            },
        )
        return car


async def bulk_transfer_ownership(payload: schemas.BulkTransferCarsRequest) -> list[dict[str, Any]]:
    """
    Move every car in `payload.car_ids` or none of them.
    """
    async with track_operation(
        "cars.bulk_transfer_ownership",
        car_count=len(payload.car_ids),
        from_user_id=str(payload.from_user_id),
        to_user_id=str(payload.to_user_id),
    ):
        await user_service.ensure_exists([payload.from_user_id, payload.to_user_id])

        logger.info(
            "Starting bulk car transfer",
            extra={"car_count": len(payload.car_ids), "from_user_id": str(payload.from_user_id)},
        )
        cars = await repository.bulk_transfer_ownership(
            payload.car_ids,
            payload.from_user_id,
            payload.to_user_id,
        )
        logger.info(
            "Bulk car transfer completed",
            extra={"transferred": len(cars), "to_user_id": str(payload.to_user_id)},
        )
        return cars
