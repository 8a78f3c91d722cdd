"""Pytest configuration and fixtures for unit tests."""

import pytest

from tests.unit.mocks import InMemoryDBClient, InMemoryVectorStore


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def vector_store():
    """Provides a fresh InMemoryVectorStore for each test."""
    return InMemoryVectorStore()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    for name in (
        "create_record",
        "create_records",
        "get_record",
        "update_record",
        "update_record_if",
        "delete_record",
        "delete_records",
        "list_records",
        "count_records",
        "get_first_record",
    ):
        monkeypatch.setattr(f"src.core.db_client.{name}", getattr(in_memory_db, name))

    return in_memory_db
