"""
Car API endpoints.

Literal segments (`/cars/search`, `/cars/user`, `/cars/transfer`, `/cars/bulk`)
are registered before `/cars/{car_id}` so they are never parsed as ids.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from core.dependencies import require_feature

from . import schemas, service

router = APIRouter()


def car_query(
    user_id: UUID | None = Query(default=None),
    brand: str | None = Query(default=None, max_length=100),
    model: str | None = Query(default=None, max_length=100),
    color: str | None = Query(default=None, max_length=50),
    min_year: int | None = Query(default=None, ge=1900, alias="minYear"),
    max_year: int | None = Query(default=None, alias="maxYear"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    sort_by: str = Query(default="id", alias="sortBy"),
    sort_order: str = Query(default="ASC", alias="sortOrder"),
) -> schemas.CarQuery:
    return schemas.CarQuery(
        user_id=user_id,
        brand=brand,
        model=model,
        color=color,
        min_year=min_year,
        max_year=max_year,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/cars")
async def list_cars(query: schemas.CarQuery = Depends(car_query)) -> dict:
    """
    Filtered, sorted, paginated cars plus the total matching the filter.
    """
    return await service.find_all(query)


@router.get("/cars/search/{term}")
async def search_cars(term: str) -> list[dict]:
    return await service.search(term)


@router.get("/cars/user/{user_id}")
async def list_user_cars(user_id: UUID) -> list[dict]:
    return await service.find_by_user_id(user_id)


@router.get("/cars/user/{user_id}/stats")
async def user_car_stats(user_id: UUID) -> dict:
    return await service.stats_by_user(user_id)


@router.delete("/cars/user/{user_id}")
async def delete_user_cars(user_id: UUID) -> dict:
    deleted = await service.remove_by_user(user_id)
    return {"deleted": deleted}


@router.post(
    "/cars/bulk",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_feature("bulk_operations"))],
)
async def create_cars(request: list[schemas.CreateCarRequest]) -> list[dict]:
    return await service.create_many(request)


@router.post(
    "/cars/transfer",
    dependencies=[Depends(require_feature("car_transfer"))],
)
async def transfer_car(request: schemas.TransferCarRequest) -> dict:
    return await service.transfer_ownership(request)


@router.post(
    "/cars/transfer/bulk",
    dependencies=[Depends(require_feature("car_transfer"))],
)
async def transfer_cars(request: schemas.BulkTransferCarsRequest) -> list[dict]:
    """
    All-or-nothing: one car not owned by `from_user_id` aborts the whole batch.
    """
    return await service.bulk_transfer_ownership(request)


@router.get("/cars/{car_id}")
async def get_car(car_id: UUID) -> dict:
    return await service.find_one(car_id)


@router.post("/cars", status_code=status.HTTP_201_CREATED)
async def create_car(request: schemas.CreateCarRequest) -> dict:
    return await service.create(request)


@router.put("/cars/{car_id}")
async def update_car(car_id: UUID, request: schemas.UpdateCarRequest) -> dict:
    return await service.update(car_id, request)


@router.delete("/cars/{car_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_car(car_id: UUID) -> Response:
    await service.remove(car_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
