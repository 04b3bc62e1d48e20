"""
Exception hierarchy for the batch rotator.

Store implementations raise `StoreError`; the rotation transaction wraps those
into a single `RotationError` naming the step that failed. Callers only need to
catch `RotationServiceError`.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class RotationStep(str, Enum):
    """Ordered steps of a rotation transaction."""

    BEGIN = "begin"
    NORMALIZE = "normalize"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    OBSERVE = "observe"
    COMMIT = "commit"


class RotationServiceError(Exception):
    """Base class for every error raised by the batch rotator."""


class StoreConnectionError(RotationServiceError):
    """The document store could not be reached at startup."""


class InvalidBatchError(RotationServiceError, ValueError):
    """A batch number outside the accepted range was supplied."""

    def __init__(self, batch_number: object) -> None:
        super().__init__(f"Invalid batch number: {batch_number!r} (must be an integer >= 1)")
        self.batch_number = batch_number


class StoreError(RotationServiceError):
    """
    Infrastructure failure raised by a store implementation.

    `transient` marks failures worth retrying (lost connection, write conflict).
    """

    def __init__(self, message: str, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class RotationError(RotationServiceError):
    """
    A rotation transaction failed at `step`.

    Failures before `commit` leave nothing behind; a transient `commit` failure
    may mean the writes landed anyway.
    """

    def __init__(self, target_batch: int, step: RotationStep, cause: Optional[BaseException]) -> None:
        super().__init__(f"Rotation to batch {target_batch} failed at step '{step.value}': {cause}")
        self.target_batch = target_batch
        self.step = step

    @property
    def transient(self) -> bool:
        return bool(getattr(self.__cause__, "transient", False))


__all__ = [
    "InvalidBatchError",
    "RotationError",
    "RotationServiceError",
    "RotationStep",
    "StoreConnectionError",
    "StoreError",
]
