"""Unit tests for the data seeder and its scheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from faker import Faker

from core import db
from core.config import Config
from seeder import service
from seeder.scheduler import SeedScheduler


@pytest.fixture
def fake():
    Faker.seed(1234)
    return Faker()


@pytest.fixture
def seed_config():
    return Config({"scheduler": {"dataSeeding": {"userCount": 3, "maxCarsPerUser": 4, "interval": 0}}})


class TestGenerators:
    def test_users_are_within_bounds(self, fake):
        users = service.generate_users(fake, 10)

        assert len(users) == 10
        assert len({user["email"] for user in users}) == 10
        assert all(service.MIN_AGE <= user["age"] <= service.MAX_AGE for user in users)
        assert all(user["email"] == user["email"].lower() for user in users)

    def test_cars_belong_to_user_and_use_catalog(self, fake):
        cars = service.generate_cars(fake, "user-1", 6)

        assert 1 <= len(cars) <= 6
        for car in cars:
            assert car["user_id"] == "user-1"
            assert car["model"] in service.CAR_CATALOG[car["brand"]]
            assert service.MIN_YEAR <= car["year"] <= service.MAX_YEAR

    def test_at_least_one_car_even_with_zero_max(self, fake):
        assert len(service.generate_cars(fake, "user-1", 0)) == 1


class TestSeedData:
    @pytest.mark.asyncio
    async def test_inserts_users_then_cars_in_one_transaction(self, inline_transaction, seed_config, fake):
        await service.seed_data(seed_config, fake=fake)

        statements = [call.args[0] for call in inline_transaction.execute.await_args_list]
        user_inserts = [sql for sql in statements if "INSERT INTO users" in sql]
        car_inserts = [sql for sql in statements if "INSERT INTO cars" in sql]
        assert len(user_inserts) == 3
        assert 3 <= len(car_inserts) <= 12
        assert statements[:3] == user_inserts

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, monkeypatch, seed_config, fake):
        monkeypatch.setattr(db, "run_transaction", AsyncMock(side_effect=RuntimeError("db down")))

        await service.seed_data(seed_config, fake=fake)


class TestSeedScheduler:
    @pytest.mark.asyncio
    async def test_runs_at_startup_and_repeats(self, seed_config):
        calls = 0
        ran_twice = asyncio.Event()

        async def job():
            nonlocal calls
            calls += 1
            if calls >= 2:
                ran_twice.set()

        scheduler = SeedScheduler(seed_config, job=job)
        scheduler.start()
        await asyncio.wait_for(ran_twice.wait(), timeout=1)
        await scheduler.stop()

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_failed_run_does_not_stop_the_loop(self, seed_config):
        attempts = 0
        recovered = asyncio.Event()

        async def job():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("boom")
            recovered.set()

        scheduler = SeedScheduler(seed_config, job=job)
        scheduler.start()
        await asyncio.wait_for(recovered.wait(), timeout=1)
        await scheduler.stop()

        assert attempts >= 2

    @pytest.mark.asyncio
    async def test_disabled_scheduler_never_starts(self):
        config = Config({"scheduler": {"enabled": False}})
        job = AsyncMock()
        scheduler = SeedScheduler(config, job=job)

        scheduler.start()
        await scheduler.stop()

        assert not scheduler.running
        job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, seed_config):
        await SeedScheduler(seed_config, job=AsyncMock()).stop()


class TestSeedDataAcrossRuns:
    @pytest.mark.asyncio
    async def test_emails_and_plates_stay_unique_between_runs(self, inline_transaction, seed_config):
        await service.seed_data(seed_config)
        await service.seed_data(seed_config)

        calls = inline_transaction.execute.await_args_list
        emails = [call.args[2] for call in calls if "INSERT INTO users" in call.args[0]]
        plates = [call.args[7] for call in calls if "INSERT INTO cars" in call.args[0]]
        assert len(emails) == 6
        assert len(set(emails)) == len(emails)
        assert len(set(plates)) == len(plates)
