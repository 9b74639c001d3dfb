"""
Synthetic data generator.

Each run inserts `scheduler.dataSeeding.userCount` users, each owning between
1 and `maxCarsPerUser` cars, inside a single transaction.
"""

from __future__ import annotations

import logging
import random
from typing import Any

import asyncpg
from faker import Faker

from cars import queries as car_queries
from core import db
from core.config import Config, get_config
from core.ids import new_id
from core.metrics import track_operation
from users import queries as user_queries

logger = logging.getLogger(__name__)

# One generator per process so `unique` holds across scheduled runs, not just
# within one batch.
_FAKER = Faker()

CAR_CATALOG: dict[str, tuple[str, ...]] = {
    "Toyota": ("Corolla", "Camry", "RAV4", "Yaris", "Prius"),
    "Volkswagen": ("Golf", "Passat", "Polo", "Tiguan"),
    "Ford": ("Focus", "Fiesta", "Mustang", "Kuga"),
    "BMW": ("3 Series", "5 Series", "X3", "X5"),
    "Mercedes-Benz": ("C-Class", "E-Class", "GLA", "GLC"),
    "Honda": ("Civic", "Accord", "CR-V", "Jazz"),
    "Hyundai": ("i30", "Tucson", "Kona", "Elantra"),
    "Renault": ("Clio", "Megane", "Captur"),
    "Tesla": ("Model 3", "Model Y", "Model S"),
    "Volvo": ("XC40", "XC60", "V60"),
}

MIN_AGE, MAX_AGE = 18, 70
MIN_YEAR, MAX_YEAR = 2010, 2024


def generate_users(fake: Faker, count: int) -> list[dict[str, Any]]:
    return [
        {
            "id": new_id(),
            "email": fake.unique.email().lower(),
            "name": fake.name(),
            "age": fake.random_int(min=MIN_AGE, max=MAX_AGE),
        }
        for _ in range(count)
    ]


def generate_cars(fake: Faker, user_id: str, max_cars: int) -> list[dict[str, Any]]:
    cars: list[dict[str, Any]] = []
    for _ in range(fake.random_int(min=1, max=max(max_cars, 1))):
        brand = random.choice(list(CAR_CATALOG))
        cars.append(
            {
                "id": new_id(),
                "user_id": user_id,
                "brand": brand,
                "model": random.choice(CAR_CATALOG[brand]),
                "year": fake.random_int(min=MIN_YEAR, max=MAX_YEAR),
                "color": fake.color_name(),
                "license_plate": fake.unique.license_plate(),
            }
        )
    return cars


async def seed_data(config: Config | None = None, *, fake: Faker | None = None) -> None:
    """
    Insert one batch of fake users and cars. Never raises: a failed batch is
    rolled back and logged.
    """
    settings = (config or get_config()).scheduler
    user_count = settings["user_count"]
    max_cars = settings["max_cars_per_user"]
    fake = fake if fake is not None else _FAKER

    async with track_operation("seeder.seed_data", user_count=user_count):
        try:
            users = generate_users(fake, user_count)
            cars = [car for user in users for car in generate_cars(fake, user["id"], max_cars)]

            async def work(conn: asyncpg.Connection) -> None:
                for user in users:
                    await conn.execute(
                        user_queries.INSERT,
                        user["id"],
                        user["email"],
                        user["name"],
                        user["age"],
                    )
                for car in cars:
                    await conn.execute(
                        car_queries.INSERT,
                        car["id"],
                        car["user_id"],
                        car["brand"],
                        car["model"],
                        car["year"],
                        car["color"],
                        car["license_plate"],
                    )

            await db.run_transaction(work)
            logger.info(
                "Seeded %d users with cars",
                user_count,
                extra={"user_count": user_count, "car_count": len(cars)},
            )
        except Exception as exc:
            logger.exception("Failed to seed data", extra={"error": str(exc)})
