"""Pytest configuration and fixtures for integration tests against a real SQLite ledger."""

import pytest

from src.core import db_client
from src.core.config import settings


@pytest.fixture
async def ledger_db(tmp_path, monkeypatch):
    """Initialise a fresh ledger file per test and close its connection afterwards."""
    db_path = tmp_path / "dedup_reviews.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()
