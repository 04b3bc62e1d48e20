"""
Batch Rotator - keep exactly one batch of stored tokens active at a time.

Token documents in a MongoDB collection are partitioned into numbered batches.
The rotator switches which batch is active, either once from the command line
or on a fixed cadence, using an all-or-nothing transaction:

- Legacy documents without a batch are normalized to batch 0
- Documents in the target batch are activated
- Every other document is deactivated
- The resulting active holders are read back and reported
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from batch_rotator.config import Settings, get_settings, mask_uri
from batch_rotator.domain.models import RotationReport, Token
from batch_rotator.errors import (
    InvalidBatchError,
    RotationError,
    RotationServiceError,
    RotationStep,
    StoreConnectionError,
    StoreError,
)
from batch_rotator.infrastructure.mongo_store import MongoTokenStore
from batch_rotator.infrastructure.store import TokenStore, TokenTransaction
from batch_rotator.rotation import BatchRotator
from batch_rotator.scheduler import RotationScheduler, next_batch
from batch_rotator.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    "mask_uri",
    # Domain
    "RotationReport",
    "Token",
    # Errors
    "InvalidBatchError",
    "RotationError",
    "RotationServiceError",
    "RotationStep",
    "StoreConnectionError",
    "StoreError",
    # Store
    "MongoTokenStore",
    "TokenStore",
    "TokenTransaction",
    # Rotation
    "BatchRotator",
    "RotationScheduler",
    "next_batch",
    # Logging
    "configure_logging",
    "get_logger",
]
