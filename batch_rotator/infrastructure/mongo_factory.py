"""
MongoDB client factory for the batch rotator.

Builds a single `MongoClient` from settings and verifies the server is reachable
before handing it out. The client is returned to the caller rather than kept in
a module-level global, so the owner decides its lifetime.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from batch_rotator.config import Settings, get_settings
from batch_rotator.errors import StoreConnectionError
from batch_rotator.utils.logging import get_logger

log = get_logger(__name__)


def _ping_retrying(settings: Settings) -> Retrying:
    return Retrying(
        stop=stop_after_attempt(settings.rotation_retry_attempts),
        wait=wait_exponential(multiplier=settings.rotation_retry_backoff_seconds, max=10),
        retry=retry_if_exception_type(ConnectionFailure),
        reraise=True,
    )


def log_database_uri(settings: Settings) -> None:
    """Log which connection string is in use without leaking embedded credentials."""
    if settings.database_uri_configured:
        log.info(f"DATABASE_URI: {settings.masked_database_uri}")
    else:
        log.info(
            "No DATABASE_URI environment variable found, using default value "
            f"{settings.database_uri}"
        )


def connect(settings: Optional[Settings] = None) -> MongoClient:
    """
    Create a MongoDB client and confirm the deployment answers a ping.

    Retries the ping with exponential backoff for transient connection errors.

    Parameters
    ----------
    settings : Settings | None
        Connection settings. Defaults to the cached process settings.

    Returns
    -------
    MongoClient
        A connected client with retryable writes enabled.

    Raises
    ------
    StoreConnectionError
        If the URI is invalid or the server stays unreachable after all attempts.
    """
    settings = settings or get_settings()
    log_database_uri(settings)

    client: Optional[MongoClient] = None
    try:
        client = MongoClient(
            settings.database_uri,
            retryWrites=True,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
        _ping_retrying(settings)(client.admin.command, "ping")
    except PyMongoError as exc:
        if client is not None:
            client.close()
        raise StoreConnectionError(
            f"Failed to connect to MongoDB at {settings.masked_database_uri}: {exc}"
        ) from exc

    log.info(
        "Connected to MongoDB",
        extra={"database": settings.database_name, "collection": settings.collection_name},
    )
    return client


__all__ = ["connect", "log_database_uri"]
