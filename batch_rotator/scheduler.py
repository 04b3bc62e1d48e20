"""
Fixed-cadence rotation trigger.

Every `rotation_interval_seconds` the scheduler reads which batch is active,
advances it around the cycle (1 -> 2 -> 3 -> 1 by default) and hands the result
to `BatchRotator.rotate`. The current batch is re-derived from storage on every
tick, so an out-of-band change to the active batch is picked up on the next one.

A failing tick is logged and the loop keeps going; only `stop()` ends it.
"""

from __future__ import annotations

import threading
from typing import Optional

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from batch_rotator.config import Settings, get_settings
from batch_rotator.domain.models import RotationReport
from batch_rotator.errors import RotationServiceError
from batch_rotator.infrastructure.store import TokenStore
from batch_rotator.rotation import BatchRotator, validate_batch_number
from batch_rotator.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_CYCLE_SIZE = 3


def next_batch(current: int, cycle_size: int = DEFAULT_CYCLE_SIZE) -> int:
    """
    Batch that follows `current` in the cycle {1, ..., cycle_size}.

    Raises `InvalidBatchError` for `current < 1`; 0 means "never assigned" and
    has no successor.
    """
    current = validate_batch_number(current)
    return (current % cycle_size) + 1


def _is_transient(exc: BaseException) -> bool:
    return bool(getattr(exc, "transient", False))


class RotationScheduler:
    """
    Drive rotations on a fixed interval until stopped.

    Parameters
    ----------
    rotator : BatchRotator
        Runs the rotation transaction.
    store : TokenStore
        Read to find the currently active batch before each tick.
    settings : Settings | None
        Interval, cycle size, fallback start batch and retry policy.
    stop_event : threading.Event | None
        Cancellation token; a fresh one is created when omitted.
    """

    def __init__(
        self,
        rotator: BatchRotator,
        store: TokenStore,
        settings: Optional[Settings] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self._rotator = rotator
        self._store = store
        self._settings = settings or get_settings()
        self._stop_event = stop_event or threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit; an in-flight tick finishes first."""
        self._stop_event.set()

    def _retrying(self) -> Retrying:
        # Backoff sleeps on the stop event so shutdown is not held up by retries.
        return Retrying(
            stop=(
                stop_after_attempt(self._settings.rotation_retry_attempts)
                | stop_when_event_set(self._stop_event)
            ),
            wait=wait_exponential(multiplier=self._settings.rotation_retry_backoff_seconds, max=30),
            sleep=self._stop_event.wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )

    def current_batch(self) -> Optional[int]:
        """Active batch according to storage, or None if nothing valid is active."""
        batch = self._store.find_current_batch()
        if batch is None:
            log.warning("[NO CURRENT BATCH] No active token found")
            return None
        if batch < 1:
            log.warning(
                f"[NO CURRENT BATCH] Active token has unassigned batch number: {batch}",
                extra={"current_batch": batch},
            )
            return None
        log.info(f"Current batch number: {batch}", extra={"current_batch": batch})
        return batch

    def resolve_target(self) -> Optional[int]:
        """
        Pick the batch for this tick.

        Falls back to `rotation_start_batch` when nothing is active; returns None
        (skip the tick) when no fallback is configured.
        """
        current = self.current_batch()
        if current is not None:
            return next_batch(current, self._settings.rotation_cycle_size)
        if self._settings.rotation_start_batch is not None:
            log.info(
                f"Falling back to configured start batch {self._settings.rotation_start_batch}",
                extra={"target_batch": self._settings.rotation_start_batch},
            )
            return self._settings.rotation_start_batch
        return None

    def tick(self) -> Optional[RotationReport]:
        """
        Run one scheduled rotation.

        The target batch is resolved once per tick; retries re-run the rotation
        to that same batch, so a commit that landed before a transient error
        is not advanced a second time. Transient store failures are retried
        with exponential backoff. Any remaining `RotationServiceError` is
        logged and swallowed so the loop survives to the next tick.
        """
        try:
            target = self._retrying()(self.resolve_target)
            if target is None:
                log.warning("[TICK SKIPPED] No current batch and no ROTATION_START_BATCH configured")
                return None
            return self._retrying()(self._rotator.rotate, target)
        except RotationServiceError:
            log.exception("[TICK FAILED] Rotation did not complete; waiting for next tick")
            return None

    def run_forever(self) -> None:
        """
        Tick every `rotation_interval_seconds` until `stop()` is called.

        The wait between ticks returns as soon as the stop event is set.
        """
        interval = self._settings.rotation_interval_seconds
        log.info(
            f"Rotate service is running every {interval}s",
            extra={"interval_seconds": interval},
        )
        while not self._stop_event.wait(interval):
            self.tick()
        log.info("Rotation scheduler stopped")


__all__ = ["DEFAULT_CYCLE_SIZE", "RotationScheduler", "next_batch"]
