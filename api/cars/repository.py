"""
Car persistence (raw SQL).
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID

import asyncpg

from core import db
from core.errors import InternalError, NotFoundError, unique_violation
from core.ids import new_id
from core.query import build_update

from . import queries
from .schemas import CarQuery, CreateCarRequest

Id = UUID | str


def _not_owned(car_id: Id, user_id: Id) -> NotFoundError:
    return NotFoundError(f"Car with ID {car_id} not found or doesn't belong to user {user_id}")


async def find_all(query: CarQuery) -> tuple[list[dict[str, Any]], int]:
    """
    Filtered page of cars plus the total matching the same filter.
    Listing and count run concurrently on separate pooled connections.
    """
    built = queries.list_query(query).build()
    rows, count_row = await asyncio.gather(
        db.fetch_all(built.sql, *built.params),
        db.fetch_one(built.count_sql, *built.count_params),
    )
    return rows, int((count_row or {}).get("total", 0))


async def find_by_id(car_id: Id) -> dict[str, Any]:
    row = await db.fetch_one(queries.FIND_BY_ID, car_id)
    if row is None:
        raise NotFoundError(f"Car with ID {car_id} not found")
    return row


async def find_by_user_id(user_id: Id) -> list[dict[str, Any]]:
    return await db.fetch_all(queries.FIND_BY_USER_ID, user_id)


async def find_by_license_plate(license_plate: str) -> dict[str, Any] | None:
    return await db.fetch_one(queries.FIND_BY_LICENSE_PLATE, license_plate)


async def existing_license_plates(plates: list[str]) -> set[str]:
    if not plates:
        return set()
    rows = await db.fetch_all(queries.FIND_BY_LICENSE_PLATES, plates)
    return {str(row["license_plate"]) for row in rows}


def _insert_args(car: CreateCarRequest) -> tuple[Any, ...]:
    return (new_id(), car.user_id, car.brand, car.model, car.year, car.color, car.license_plate)


async def create(car: CreateCarRequest) -> dict[str, Any]:
    try:
        row = await db.fetch_one(queries.INSERT, *_insert_args(car))
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc
    if row is None:
        raise InternalError(f"Failed to create car with license plate: {car.license_plate}")
    return row


async def update(car_id: Id, changes: dict[str, Any]) -> dict[str, Any]:
    sql, params = build_update(
        "cars",
        changes,
        allowed_columns=queries.UPDATABLE_COLUMNS,
        row_id=car_id,
    )
    try:
        row = await db.fetch_one(sql, *params)
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc
    if row is None:
        raise NotFoundError(f"Car with ID {car_id} not found")
    return row


async def delete(car_id: Id) -> None:
    status = await db.execute(queries.DELETE, car_id)
    if db.row_count(status) == 0:
        raise NotFoundError(f"Car with ID {car_id} not found")


async def delete_by_user_id(user_id: Id) -> int:
    status = await db.execute(queries.DELETE_BY_USER_ID, user_id)
    return db.row_count(status)


async def create_many(cars: list[CreateCarRequest]) -> list[dict[str, Any]]:
    """
    Insert all cars in one transaction: either every row lands or none.
    """

    async def work(conn: asyncpg.Connection) -> list[dict[str, Any]]:
        created: list[dict[str, Any]] = []
        for car in cars:
            row = await conn.fetchrow(queries.INSERT, *_insert_args(car))
            if row is None:
                raise InternalError(f"Failed to create car with license plate: {car.license_plate}")
            created.append(dict(row))
        return created

    try:
        return await db.run_transaction(work)
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc


async def stats_by_user(user_id: Id) -> dict[str, Any]:
    row = await db.fetch_one(queries.STATS_BY_USER, user_id) or {}
    return {
        "total_cars": int(row.get("total_cars") or 0),
        "available_cars": int(row.get("available_cars") or 0),
        "unique_brands": int(row.get("unique_brands") or 0),
        "oldest_car_year": row.get("oldest_car_year"),
        "newest_car_year": row.get("newest_car_year"),
    }


async def search(term: str) -> list[dict[str, Any]]:
    return await db.fetch_all(queries.SEARCH, f"%{term}%")


async def count_by_user(user_id: Id) -> int:
    row = await db.fetch_one(queries.COUNT_BY_USER, user_id)
    return int((row or {}).get("count", 0))


async def verify_ownership(car_id: Id, user_id: Id) -> bool:
    row = await db.fetch_one(queries.VERIFY_OWNERSHIP, car_id, user_id)
    return row is not None


async def transfer_ownership(car_id: Id, from_user_id: Id, to_user_id: Id) -> dict[str, Any]:
    """
    Atomic conditional move. A car that is missing and a car owned by someone
    else both yield zero rows and the same NotFoundError.
    """
    row = await db.fetch_one(queries.TRANSFER_OWNERSHIP, to_user_id, car_id, from_user_id)
    if row is None:
        raise _not_owned(car_id, from_user_id)
    return row


async def bulk_transfer_ownership(
    car_ids: list[Id],
    from_user_id: Id,
    to_user_id: Id,
) -> list[dict[str, Any]]:
    """
    All-or-nothing transfer: the first car that is not owned by
    `from_user_id` aborts the transaction and nothing moves.
    """

    async def work(conn: asyncpg.Connection) -> list[dict[str, Any]]:
        transferred: list[dict[str, Any]] = []
        for car_id in car_ids:
            owned = await conn.fetchrow(queries.VERIFY_OWNERSHIP, car_id, from_user_id)
            if owned is None:
                raise _not_owned(car_id, from_user_id)

            row = await conn.fetchrow(queries.TRANSFER_OWNERSHIP, to_user_id, car_id, from_user_id)
            if row is None:
                raise InternalError(f"Failed to transfer car {car_id}")
            transferred.append(dict(row))
        return transferred

    return await db.run_transaction(work)
