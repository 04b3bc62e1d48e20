"""
Infrastructure package for the batch rotator.

Centralizes document-store concerns (client construction, transactions,
the store protocols). Keep this layer focused on I/O and resource management,
decoupled from rotation and scheduling logic.
"""

from batch_rotator.infrastructure.mongo_factory import connect
from batch_rotator.infrastructure.mongo_store import MongoTokenStore, MongoTransaction
from batch_rotator.infrastructure.store import TokenStore, TokenTransaction

__all__ = [
    "MongoTokenStore",
    "MongoTransaction",
    "TokenStore",
    "TokenTransaction",
    "connect",
]
