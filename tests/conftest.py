"""
Pytest configuration for the batch rotator.

Provides fixtures for:
- An in-memory token store seeded with one holder per batch
- Settings tuned for fast tests (no retry backoff, short interval)
"""

from __future__ import annotations

import os
from typing import List

import pytest

from batch_rotator.config import Settings
from batch_rotator.rotation import BatchRotator
from tests.fakes import Document, InMemoryTokenStore


@pytest.fixture
def token_documents() -> List[Document]:
    """One holder per batch; batch 2 is currently active."""
    return [
        {"_id": 1, "username": "alice", "auth": "a-secret", "ct0": "a-ct0", "batch": 1, "active": False},
        {"_id": 2, "username": "bob", "auth": "b-secret", "ct0": "b-ct0", "batch": 2, "active": True},
        {"_id": 3, "username": "carol", "auth": "c-secret", "ct0": "c-ct0", "batch": 3, "active": False},
    ]


@pytest.fixture
def memory_store(token_documents: List[Document]) -> InMemoryTokenStore:
    return InMemoryTokenStore(token_documents)


@pytest.fixture
def rotator(memory_store: InMemoryTokenStore) -> BatchRotator:
    return BatchRotator(memory_store)


@pytest.fixture
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Retry backoff is disabled so retry tests do not sleep.
    """
    return Settings(
        _env_file=None,
        database_uri=os.getenv("DATABASE_URI", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "batch_rotator_test"),
        collection_name="tokens",
        rotation_interval_seconds=0.01,
        rotation_retry_attempts=3,
        rotation_retry_backoff_seconds=0,
        server_selection_timeout_ms=2000,
        log_level="DEBUG",
    )
