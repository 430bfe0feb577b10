"""Shared fixtures for integration tests against a real PostgreSQL.

Every test gets a fresh pool on its own event loop, the booking schema, empty
booking tables and a small set of reference rows.
"""

import os

import asyncpg
import pytest
import pytest_asyncio

from rentalops.db.gateway import StorageGateway
from rentalops.db.schema import apply_schema

_TABLES = (
    "crew_schedule",
    "job_crew",
    "job_line_items",
    "jobs",
    "system_settings",
    "equipment",
    "employees",
    "clients",
)


@pytest.fixture
def database_url():
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")
    return url


@pytest_asyncio.fixture
async def db_pool(database_url):
    """Connection pool with the schema applied and all tables emptied."""
    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=4)
    gateway = StorageGateway(pool)
    await apply_schema(gateway)
    await gateway.execute(
        f"TRUNCATE {', '.join(_TABLES)} RESTART IDENTITY CASCADE"
    )
    yield pool
    await pool.close()


@pytest_asyncio.fixture
async def gateway(db_pool):
    return StorageGateway(db_pool)


@pytest_asyncio.fixture
async def references(gateway):
    """Seed reference rows. Returns their ids by name."""
    client_id = await gateway.fetchval(
        "INSERT INTO clients (name, document) VALUES ($1, $2) RETURNING id",
        "ACME Events",
        "12.345.678/0001-90",
    )
    employees = {}
    for name, position in (("Ana", "Technician"), ("Bruno", "Driver")):
        employees[name] = await gateway.fetchval(
            "INSERT INTO employees (name, position) VALUES ($1, $2) RETURNING id",
            name,
            position,
        )
    equipment_id = await gateway.fetchval(
        "INSERT INTO equipment (name) VALUES ($1) RETURNING id", "Line array speaker"
    )
    return {
        "client": client_id,
        "employees": employees,
        "equipment": equipment_id,
    }
