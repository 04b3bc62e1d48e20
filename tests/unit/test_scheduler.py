from __future__ import annotations

import threading
import time
from contextlib import contextmanager

import pytest

from batch_rotator.errors import InvalidBatchError, StoreError
from batch_rotator.rotation import BatchRotator
from batch_rotator.scheduler import RotationScheduler, next_batch
from tests.fakes import InMemoryTokenStore

START_BATCH = 2
LOOP_TIMEOUT_SECONDS = 5


def _scheduler(store: InMemoryTokenStore, settings, **overrides) -> RotationScheduler:
    if overrides:
        settings = settings.model_copy(update=overrides)
    return RotationScheduler(BatchRotator(store), store, settings)


class LostAckTokenStore(InMemoryTokenStore):
    """Commits, then reports a transient error as if the acknowledgement was lost."""

    def __init__(self, *args, lost_acks: int = 1, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.lost_acks = lost_acks

    @contextmanager
    def transaction(self):
        with super().transaction() as txn:
            yield txn
        if self.lost_acks > 0:
            self.lost_acks -= 1
            raise StoreError("commit acknowledgement lost", transient=True)


@pytest.mark.parametrize(("current", "expected"), [(1, 2), (2, 3), (3, 1)])
def test_next_batch_cycles_through_three_batches(current: int, expected: int) -> None:
    assert next_batch(current) == expected


def test_next_batch_honours_cycle_size() -> None:
    assert next_batch(4, cycle_size=4) == 1
    assert next_batch(1, cycle_size=1) == 1


@pytest.mark.parametrize("current", [0, -1])
def test_next_batch_rejects_unassigned_batch(current: int) -> None:
    with pytest.raises(InvalidBatchError):
        next_batch(current)


def test_tick_advances_active_batch(memory_store, test_settings) -> None:
    scheduler = _scheduler(memory_store, test_settings)

    report = scheduler.tick()

    assert report is not None
    assert report.target_batch == 3
    assert report.active_holders == ("carol",)
    assert memory_store.find_current_batch() == 3


def test_consecutive_ticks_wrap_around(memory_store, test_settings) -> None:
    scheduler = _scheduler(memory_store, test_settings)

    targets = [scheduler.tick().target_batch for _ in range(4)]

    assert targets == [3, 1, 2, 3]


def test_tick_skips_when_nothing_is_active(test_settings, caplog) -> None:
    store = InMemoryTokenStore([{"username": "alice", "batch": 1, "active": False}])
    scheduler = _scheduler(store, test_settings)

    with caplog.at_level("WARNING", logger="batch_rotator.scheduler"):
        assert scheduler.tick() is None

    assert store.commits == 0
    assert any("[TICK SKIPPED]" in r.getMessage() for r in caplog.records)


def test_tick_treats_batch_zero_as_no_current_batch(test_settings) -> None:
    store = InMemoryTokenStore(
        [
            {"username": "legacy", "batch": 0, "active": True},
            {"username": "alice", "batch": 1, "active": False},
        ]
    )
    scheduler = _scheduler(store, test_settings)

    assert scheduler.current_batch() is None
    assert scheduler.tick() is None
    assert store.commits == 0


def test_tick_falls_back_to_configured_start_batch(test_settings) -> None:
    store = InMemoryTokenStore(
        [
            {"username": "alice", "batch": 1},
            {"username": "bob", "batch": START_BATCH},
        ]
    )
    scheduler = _scheduler(store, test_settings, rotation_start_batch=START_BATCH)

    report = scheduler.tick()

    assert report is not None
    assert report.target_batch == START_BATCH
    assert report.active_holders == ("bob",)


def test_tick_retries_transient_failures(memory_store, test_settings) -> None:
    memory_store.fail_on = {"deactivate"}
    memory_store.transient = True
    memory_store.failures = 2
    scheduler = _scheduler(memory_store, test_settings)

    report = scheduler.tick()

    assert report is not None
    assert report.target_batch == 3
    assert memory_store.aborts == 2
    assert memory_store.commits == 1


def test_tick_gives_up_after_bounded_attempts(memory_store, token_documents, test_settings) -> None:
    memory_store.fail_on = {"activate"}
    memory_store.transient = True
    scheduler = _scheduler(memory_store, test_settings, rotation_retry_attempts=2)

    assert scheduler.tick() is None
    assert memory_store.aborts == 2
    assert memory_store.documents == token_documents


def test_tick_does_not_retry_permanent_failures(memory_store, test_settings, caplog) -> None:
    memory_store.fail_on = {"activate"}
    scheduler = _scheduler(memory_store, test_settings)

    with caplog.at_level("ERROR", logger="batch_rotator.scheduler"):
        assert scheduler.tick() is None

    assert memory_store.aborts == 1
    assert any("[TICK FAILED]" in r.getMessage() for r in caplog.records)


def test_tick_survives_read_failure(memory_store, test_settings) -> None:
    memory_store.fail_on = {"find_current"}
    scheduler = _scheduler(memory_store, test_settings)

    assert scheduler.tick() is None
    assert memory_store.commits == 0


def test_retry_after_lost_commit_ack_keeps_the_same_target(token_documents, test_settings) -> None:
    store = LostAckTokenStore(token_documents)
    scheduler = _scheduler(store, test_settings)

    report = scheduler.tick()

    assert report is not None
    assert report.target_batch == 3
    assert store.find_current_batch() == 3
    assert store.commits == 2
    assert store.calls.count("find_current") == 2


def test_tick_does_not_retry_once_stop_is_requested(memory_store, test_settings) -> None:
    memory_store.fail_on = {"deactivate"}
    memory_store.transient = True
    stop_event = threading.Event()
    stop_event.set()
    scheduler = RotationScheduler(
        BatchRotator(memory_store), memory_store, test_settings, stop_event=stop_event
    )

    assert scheduler.tick() is None
    assert memory_store.aborts == 1


def test_stop_interrupts_retry_backoff(memory_store, test_settings) -> None:
    memory_store.fail_on = {"deactivate"}
    memory_store.transient = True
    scheduler = _scheduler(
        memory_store,
        test_settings,
        rotation_retry_attempts=3,
        rotation_retry_backoff_seconds=60,
    )
    timer = threading.Timer(0.05, scheduler.stop)
    timer.start()

    start = time.monotonic()
    try:
        assert scheduler.tick() is None
    finally:
        timer.cancel()

    assert time.monotonic() - start < LOOP_TIMEOUT_SECONDS
    assert 1 <= memory_store.aborts <= 2
    assert memory_store.commits == 0


def test_run_forever_ticks_until_stopped(memory_store, test_settings) -> None:
    scheduler = _scheduler(memory_store, test_settings)
    worker = threading.Thread(target=scheduler.run_forever)
    worker.start()

    deadline = time.monotonic() + LOOP_TIMEOUT_SECONDS
    while memory_store.commits < 2 and time.monotonic() < deadline:
        time.sleep(0.005)
    scheduler.stop()
    worker.join(timeout=LOOP_TIMEOUT_SECONDS)

    assert not worker.is_alive()
    assert scheduler.stopped
    assert memory_store.commits >= 2


def test_stop_while_idle_exits_without_ticking(memory_store, test_settings) -> None:
    scheduler = _scheduler(memory_store, test_settings, rotation_interval_seconds=60)
    worker = threading.Thread(target=scheduler.run_forever)
    worker.start()

    scheduler.stop()
    worker.join(timeout=LOOP_TIMEOUT_SECONDS)

    assert not worker.is_alive()
    assert memory_store.commits == 0


def test_stop_event_can_be_shared(memory_store, test_settings) -> None:
    stop_event = threading.Event()
    stop_event.set()
    scheduler = RotationScheduler(
        BatchRotator(memory_store), memory_store, test_settings, stop_event=stop_event
    )

    scheduler.run_forever()

    assert scheduler.stopped
    assert memory_store.commits == 0
