"""
Domain models for the batch rotator.

`Token` mirrors one document of the `tokens` collection; `RotationReport` is the
outcome of a committed rotation transaction.
"""
from __future__ import annotations

from typing import Any, Optional, Tuple

from pydantic import BaseModel, Field

UNASSIGNED_BATCH = 0


class Token(BaseModel):
    """
    Representation of a single credential holder in the `tokens` collection.
    """

    id: Optional[Any] = Field(None, alias="_id", description="Store-assigned identity.")
    username: str = Field(..., description="Holder identifier used for reporting.")
    auth: Optional[str] = Field(None, repr=False, description="Opaque auth material.")
    ct0: Optional[str] = Field(None, repr=False, description="Opaque auth material.")
    batch: int = Field(UNASSIGNED_BATCH, description="Partition the token belongs to.")
    active: bool = Field(False, description="Whether the token's batch is the current one.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }


class RotationReport(BaseModel):
    """
    Result of a committed rotation.
    """

    target_batch: int = Field(..., ge=1, description="Batch that was made active.")
    active_holders: Tuple[str, ...] = Field((), description="Usernames active after commit.")
    normalized_count: int = Field(0, description="Documents given batch=0.")
    activated_count: int = Field(0, description="Documents switched to active.")
    deactivated_count: int = Field(0, description="Documents switched to inactive.")
    duration_seconds: float = Field(0.0, description="Wall-clock time of the transaction.")

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.active_holders


__all__ = ["RotationReport", "Token", "UNASSIGNED_BATCH"]
