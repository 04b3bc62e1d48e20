"""
MongoDB-backed token store.

Each rotation runs inside a client session with a multi-document transaction,
so the normalize/activate/deactivate writes and the read-back either commit
together or not at all. Transactions need a replica set or sharded cluster.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError
from pymongo import MongoClient
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, PyMongoError

from batch_rotator.config import Settings, get_settings
from batch_rotator.domain.models import UNASSIGNED_BATCH, Token
from batch_rotator.errors import StoreError
from batch_rotator.infrastructure.mongo_factory import connect
from batch_rotator.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_LABELS = ("TransientTransactionError", "UnknownTransactionCommitResult")


def is_transient(exc: PyMongoError) -> bool:
    """Whether a driver error is worth retrying on the next attempt."""
    if isinstance(exc, ConnectionFailure):
        return True
    return any(exc.has_error_label(label) for label in _TRANSIENT_LABELS)


def _store_error(action: str, exc: PyMongoError) -> StoreError:
    return StoreError(f"failed to {action}: {exc}", transient=is_transient(exc))


def _holder_from_document(document: Dict[str, Any]) -> Optional[str]:
    try:
        return Token.model_validate(document).username
    except ValidationError as exc:
        log.debug(
            "Skipping undecodable token document",
            extra={"document_id": str(document.get("_id")), "errors": exc.error_count()},
        )
        return None


class MongoTransaction:
    """`TokenTransaction` bound to one collection and one client session."""

    def __init__(self, collection: Collection, session: ClientSession) -> None:
        self._collection = collection
        self._session = session

    def _update_many(self, action: str, query: Dict[str, Any], fields: Dict[str, Any]) -> int:
        try:
            result = self._collection.update_many(
                query, {"$set": fields}, session=self._session
            )
        except PyMongoError as exc:
            raise _store_error(action, exc) from exc
        return result.modified_count

    def normalize_missing_batch(self) -> int:
        return self._update_many(
            "set batch=0 for missing batch field",
            {"batch": {"$exists": False}},
            {"batch": UNASSIGNED_BATCH},
        )

    def activate_batch(self, batch_number: int) -> int:
        return self._update_many(
            f"set active=true for batch={batch_number}",
            {"batch": batch_number},
            {"active": True},
        )

    def deactivate_other_batches(self, batch_number: int) -> int:
        return self._update_many(
            f"set active=false for batch!={batch_number}",
            {"batch": {"$ne": batch_number}},
            {"active": False},
        )

    def find_active_holders(self) -> List[str]:
        holders: List[str] = []
        try:
            with self._collection.find(
                {"active": True}, {"username": 1, "batch": 1, "active": 1}, session=self._session
            ) as cursor:
                for document in cursor:
                    username = _holder_from_document(document)
                    if username is not None:
                        holders.append(username)
        except PyMongoError as exc:
            raise _store_error("retrieve active tokens", exc) from exc
        return holders


class MongoTokenStore:
    """
    `TokenStore` over a MongoDB collection.

    The store owns the client it is given and closes it in `close()`; use it as
    a context manager in long-lived processes.
    """

    def __init__(self, client: MongoClient, database_name: str, collection_name: str) -> None:
        self._client = client
        self._collection: Collection = client[database_name][collection_name]

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MongoTokenStore":
        settings = settings or get_settings()
        return cls(connect(settings), settings.database_name, settings.collection_name)

    @contextmanager
    def transaction(self) -> Iterator[MongoTransaction]:
        """
        Open a session and a transaction around the block.

        Leaving the block normally commits; any exception aborts the transaction
        and propagates. Driver errors raised while starting, committing or
        aborting are translated to `StoreError`.
        """
        try:
            with self._client.start_session() as session:
                with session.start_transaction():
                    yield MongoTransaction(self._collection, session)
        except PyMongoError as exc:
            raise _store_error("complete transaction", exc) from exc

    def find_current_batch(self) -> Optional[int]:
        try:
            document = self._collection.find_one({"active": True}, {"batch": 1})
        except PyMongoError as exc:
            raise _store_error("get current batch number", exc) from exc
        if document is None:
            return None
        batch = document.get("batch")
        if isinstance(batch, bool) or not isinstance(batch, int):
            log.warning(
                "Active token has a non-integer batch field",
                extra={"document_id": str(document.get("_id")), "batch": repr(batch)},
            )
            return None
        return batch

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MongoTokenStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["MongoTokenStore", "MongoTransaction", "is_transient"]
