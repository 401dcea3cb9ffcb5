"""Shared fixtures for the Cadence test suite."""

from __future__ import annotations

import pytest

from cadence.core.catalog_db import CatalogDb


@pytest.fixture
async def db() -> CatalogDb:
    """Create an in-memory catalog database with the schema applied."""
    db = CatalogDb(":memory:")
    await db.open()
    await db.ensure_schema()
    yield db
    await db.close()
