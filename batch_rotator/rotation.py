"""
Batch rotation transaction.

Usage:
    from batch_rotator.rotation import BatchRotator

    rotator = BatchRotator(store)
    report = rotator.rotate(2)
    print(report.active_holders)

A rotation runs four ordered steps inside one store transaction:

1. normalize   - documents without `batch` get `batch = 0`
2. activate    - documents with `batch == target` get `active = true`
3. deactivate  - documents with `batch != target` get `active = false`
4. observe     - usernames of every active document are read back

Normalization comes first so legacy documents are classified as "not in the
target batch". Steps 2 and 3 match disjoint sets, so their order is irrelevant
to the final state.
"""

from __future__ import annotations

import threading
import time
from typing import List

from batch_rotator.domain.models import RotationReport
from batch_rotator.errors import InvalidBatchError, RotationError, RotationStep, StoreError
from batch_rotator.infrastructure.store import TokenStore
from batch_rotator.utils.logging import get_logger

log = get_logger(__name__)


def validate_batch_number(batch_number: object) -> int:
    """Return `batch_number` if it is an integer >= 1, else raise `InvalidBatchError`."""
    if isinstance(batch_number, bool) or not isinstance(batch_number, int) or batch_number < 1:
        raise InvalidBatchError(batch_number)
    return batch_number


class BatchRotator:
    """
    Runs rotation transactions against a `TokenStore`.

    Calls to `rotate` are serialized, so a timer tick and a manual trigger
    sharing one rotator never interleave their writes.
    """

    def __init__(self, store: TokenStore) -> None:
        self._store = store
        self._lock = threading.Lock()

    def rotate(self, target_batch: int) -> RotationReport:
        """
        Make `target_batch` the only active batch and report who is active.

        Raises
        ------
        InvalidBatchError
            If `target_batch` is not an integer >= 1. The store is not touched.
        RotationError
            If any step fails; the transaction is aborted and `step` names the
            step that failed.
        """
        target_batch = validate_batch_number(target_batch)

        with self._lock:
            log.info(
                f"[ROTATION START] Setting active tokens for batch number: {target_batch}",
                extra={"target_batch": target_batch},
            )
            start = time.perf_counter()
            try:
                report = self._run_transaction(target_batch, start)
            except RotationError as exc:
                log.error(
                    f"[ROTATION FAILED] batch={target_batch} step={exc.step.value}: {exc.__cause__}",
                    extra={
                        "target_batch": target_batch,
                        "step": exc.step.value,
                        "transient": exc.transient,
                    },
                )
                raise

        self._log_report(report)
        return report

    def _run_transaction(self, target_batch: int, start: float) -> RotationReport:
        step = RotationStep.BEGIN
        try:
            with self._store.transaction() as txn:
                step = RotationStep.NORMALIZE
                normalized = txn.normalize_missing_batch()

                step = RotationStep.ACTIVATE
                activated = txn.activate_batch(target_batch)

                step = RotationStep.DEACTIVATE
                deactivated = txn.deactivate_other_batches(target_batch)

                step = RotationStep.OBSERVE
                holders: List[str] = txn.find_active_holders()

                step = RotationStep.COMMIT
        except StoreError as exc:
            raise RotationError(target_batch, step, exc) from exc

        return RotationReport(
            target_batch=target_batch,
            active_holders=tuple(holders),
            normalized_count=normalized,
            activated_count=activated,
            deactivated_count=deactivated,
            duration_seconds=time.perf_counter() - start,
        )

    @staticmethod
    def _log_report(report: RotationReport) -> None:
        extra = {
            "target_batch": report.target_batch,
            "active_holders": list(report.active_holders),
            "normalized": report.normalized_count,
            "activated": report.activated_count,
            "deactivated": report.deactivated_count,
            "duration_seconds": round(report.duration_seconds, 3),
        }
        if report.is_empty:
            log.warning(
                f"[ROTATION EMPTY] batch={report.target_batch}: no active tokens found",
                extra=extra,
            )
        else:
            log.info(
                f"[ROTATION COMMITTED] batch={report.target_batch} "
                f"active tokens usernames: {list(report.active_holders)}",
                extra=extra,
            )


__all__ = ["BatchRotator", "validate_batch_number"]
