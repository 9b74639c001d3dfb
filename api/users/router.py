"""
User API endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from core.dependencies import require_feature

from . import schemas, service

router = APIRouter()


def user_query(
    name: str | None = Query(default=None, max_length=255),
    email: str | None = Query(default=None, max_length=255),
    min_age: int | None = Query(default=None, ge=1, alias="minAge"),
    max_age: int | None = Query(default=None, ge=1, alias="maxAge"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    sort_by: str = Query(default="id", alias="sortBy"),
    sort_order: str = Query(default="ASC", alias="sortOrder"),
) -> schemas.UserQuery:
    return schemas.UserQuery(
        name=name,
        email=email,
        min_age=min_age,
        max_age=max_age,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/users")
async def list_users(query: schemas.UserQuery = Depends(user_query)) -> dict:
    return await service.find_all(query)


@router.post(
    "/users/bulk",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_feature("bulk_operations"))],
)
async def create_users(request: list[schemas.CreateUserRequest]) -> list[dict]:
    return await service.create_many(request)


@router.post(
    "/users/register-with-cars",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_feature("user_registration_with_cars"))],
)
async def register_with_cars(request: schemas.RegisterUserWithCarsRequest) -> dict:
    """
    Create a user together with its cars in one transaction.
    """
    return await service.register_user_with_cars(request)


@router.get("/users/{user_id}")
async def get_user(user_id: UUID) -> dict:
    return await service.find_one(user_id)


@router.get("/users/{user_id}/with-cars")
async def get_user_with_cars(user_id: UUID) -> dict:
    return await service.find_one_with_cars(user_id)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(request: schemas.CreateUserRequest) -> dict:
    return await service.create(request)


@router.put("/users/{user_id}")
async def update_user(user_id: UUID, request: schemas.UpdateUserRequest) -> dict:
    return await service.update(user_id, request)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: UUID) -> Response:
    await service.remove(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
