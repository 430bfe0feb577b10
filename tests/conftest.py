"""Root conftest for test suite.

Auto-skips tests that need a real PostgreSQL database.
Run them with: TEST_DATABASE_URL=postgresql://... pytest -m integration_db
"""

import os

import pytest


def pytest_collection_modifyitems(config, items):
    """Skip integration_db tests unless a test database is configured.

    These tests create and truncate tables, so they only run against the
    database named in TEST_DATABASE_URL.
    """
    if os.environ.get("TEST_DATABASE_URL"):
        return

    skip_db = pytest.mark.skip(
        reason="needs PostgreSQL. Run with: TEST_DATABASE_URL=... pytest -m integration_db"
    )

    for item in items:
        if "integration_db" in item.keywords:
            item.add_marker(skip_db)
