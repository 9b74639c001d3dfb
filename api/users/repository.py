"""
User persistence (raw SQL).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from uuid import UUID

import asyncpg

from cars import queries as car_queries
from core import db
from core.errors import InternalError, NotFoundError, unique_violation
from core.ids import new_id
from core.query import build_update

from . import queries
from .schemas import CreateUserRequest, UserQuery


async def find_all(query: UserQuery) -> tuple[list[dict[str, Any]], int]:
    built = queries.list_query(query).build()
    rows, count_row = await asyncio.gather(
        db.fetch_all(built.sql, *built.params),
        db.fetch_one(built.count_sql, *built.count_params),
    )
    return rows, int((count_row or {}).get("total", 0))


async def find_by_id(user_id: UUID | str) -> dict[str, Any]:
    row = await db.fetch_one(queries.FIND_BY_ID, user_id)
    if row is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    return row


async def find_by_id_with_cars(user_id: UUID | str) -> dict[str, Any]:
    row = await db.fetch_one(queries.FIND_BY_ID_WITH_CARS, user_id)
    if row is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    row["cars"] = json.loads(row["cars"] or "[]")
    row["car_count"] = int(row["car_count"])
    return row


async def find_by_email(email: str) -> dict[str, Any] | None:
    return await db.fetch_one(queries.FIND_BY_EMAIL, email)


async def existing_emails(emails: list[str]) -> set[str]:
    if not emails:
        return set()
    rows = await db.fetch_all(queries.FIND_BY_EMAILS, emails)
    return {str(row["email"]) for row in rows}


async def create(payload: CreateUserRequest) -> dict[str, Any]:
    try:
        row = await db.fetch_one(queries.INSERT, new_id(), payload.email, payload.name, payload.age)
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc
    if row is None:
        raise InternalError("Failed to create user.")
    return row


async def update(user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
    """
    Partial update: only keys present in `changes` are written.
    """
    sql, params = build_update(
        "users",
        changes,
        allowed_columns=queries.UPDATABLE_COLUMNS,
        row_id=user_id,
    )
    try:
        row = await db.fetch_one(sql, *params)
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc
    if row is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    return row


async def delete(user_id: UUID | str) -> None:
    status = await db.execute(queries.DELETE, user_id)
    if db.row_count(status) == 0:
        raise NotFoundError(f"User with ID {user_id} not found")


async def create_many(users: list[CreateUserRequest]) -> list[dict[str, Any]]:
    """
    Insert all users in one transaction: either every row lands or none.
    """

    async def work(conn: asyncpg.Connection) -> list[dict[str, Any]]:
        created: list[dict[str, Any]] = []
        for user in users:
            row = await conn.fetchrow(queries.INSERT, new_id(), user.email, user.name, user.age)
            if row is None:
                raise InternalError(f"Failed to create user with email: {user.email}")
            created.append(dict(row))
        return created

    try:
        return await db.run_transaction(work)
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc


async def create_user_with_cars(
    user: CreateUserRequest,
    cars: list[dict[str, Any]],
) -> dict[str, Any]:
    """
    Insert a user and all of its cars in one transaction.

    `cars` items carry brand, model, year, color and license_plate.
    """

    async def work(conn: asyncpg.Connection) -> dict[str, Any]:
        user_id = new_id()
        user_row = await conn.fetchrow(queries.INSERT, user_id, user.email, user.name, user.age)
        if user_row is None:
            raise InternalError("Failed to create user - no row returned.")

        created_cars: list[dict[str, Any]] = []
        for car in cars:
            car_row = await conn.fetchrow(
                car_queries.INSERT,
                new_id(),
                user_id,
                car["brand"],
                car["model"],
                car["year"],
                car.get("color"),
                car["license_plate"],
            )
            if car_row is None:
                raise InternalError(f"Failed to create car with license plate: {car['license_plate']}")
            created_cars.append(dict(car_row))

        return {**dict(user_row), "cars": created_cars}

    try:
        return await db.run_transaction(work)
    except asyncpg.UniqueViolationError as exc:
        raise unique_violation(exc) from exc
