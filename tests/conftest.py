"""Pytest configuration and shared fixtures."""

import os
from pathlib import Path
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("CONFIG_DIR", str(ROOT / "config"))

USER_ID = "0190a8a4-7c1e-7b3e-8f10-2a6c1d9e4b01"
OTHER_USER_ID = "0190a8a4-7c1e-7b3e-8f10-2a6c1d9e4b02"
CAR_ID = "0190a8a4-7c1e-7b3e-8f10-2a6c1d9e4c01"
OTHER_CAR_ID = "0190a8a4-7c1e-7b3e-8f10-2a6c1d9e4c02"


@pytest.fixture
def sample_user() -> Dict[str, Any]:
    return {
        "id": USER_ID,
        "email": "ada@example.com",
        "name": "Ada Lovelace",
        "age": 36,
        "is_active": True,
        "created_at": "2024-01-15T10:30:00+00:00",
        "updated_at": "2024-01-15T10:30:00+00:00",
    }


@pytest.fixture
def sample_car() -> Dict[str, Any]:
    return {
        "id": CAR_ID,
        "user_id": USER_ID,
        "brand": "Toyota",
        "model": "Corolla",
        "year": 2020,
        "color": "Blue",
        "license_plate": "ABC-123",
        "is_available": True,
        "created_at": "2024-01-15T10:30:00+00:00",
        "updated_at": "2024-01-15T10:30:00+00:00",
    }


@pytest.fixture
def mock_connection():
    """Mock asyncpg connection handed to transaction work functions."""
    conn = AsyncMock()
    conn.fetchrow = AsyncMock()
    conn.execute = AsyncMock()
    return conn


@pytest.fixture
def inline_transaction(monkeypatch, mock_connection):
    """
    Replace `db.run_transaction` with a direct call on `mock_connection`.
    Returns the connection so tests can script its answers.
    """
    from core import db

    async def run_transaction(work):
        return await work(mock_connection)

    monkeypatch.setattr(db, "run_transaction", run_transaction)
    return mock_connection


@pytest.fixture
def fake_pool(monkeypatch):
    """A pool whose acquire() hands out one MagicMock connection."""
    from core import db

    conn = MagicMock()
    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=None)
    tx.__aexit__ = AsyncMock(return_value=False)
    conn.transaction.return_value = tx

    pool = MagicMock()
    pool.acquire = AsyncMock(return_value=conn)
    pool.release = AsyncMock()
    pool.get_size.return_value = 4
    pool.get_idle_size.return_value = 3
    monkeypatch.setattr(db, "_pool", pool)
    return pool
