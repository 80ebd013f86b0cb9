from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pricehistory.contexts.price_history.adapters.outbound.persistence.in_memory import (
    InMemoryIngestionJobQueue,
)

_NOW = datetime(2023, 6, 25, 8, 0, tzinfo=timezone.utc)


def test_claim_is_fifo_and_increments_attempt() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=2)
    first = queue.enqueue_payload(payload={"key": "0xaa"}, now=_NOW)
    second = queue.enqueue_payload(payload={"key": "0xbb"}, now=_NOW + timedelta(seconds=1))

    claimed_first = queue.claim_next(
        now=_NOW + timedelta(seconds=5),
        locked_by="w1",
        lease_seconds=30,
    )
    claimed_second = queue.claim_next(
        now=_NOW + timedelta(seconds=5),
        locked_by="w2",
        lease_seconds=30,
    )

    assert claimed_first is not None and claimed_first.job_id == first
    assert claimed_second is not None and claimed_second.job_id == second
    assert claimed_first.attempt == 1
    assert claimed_first.lease_expires_at == _NOW + timedelta(seconds=35)
    assert queue.claim_next(now=_NOW, locked_by="w3", lease_seconds=30) is None


def test_expired_lease_is_reclaimed_by_another_worker() -> None:
    queue = InMemoryIngestionJobQueue()
    job_id = queue.enqueue_payload(payload={"key": "0xaa"}, now=_NOW)
    queue.claim_next(now=_NOW, locked_by="w1", lease_seconds=10)

    early = queue.claim_next(now=_NOW + timedelta(seconds=9), locked_by="w2", lease_seconds=10)
    assert early is None
    reclaimed = queue.claim_next(
        now=_NOW + timedelta(seconds=10),
        locked_by="w2",
        lease_seconds=10,
    )

    assert reclaimed is not None
    assert reclaimed.job_id == job_id
    assert reclaimed.attempt == 2
    assert queue.fail(job_id=job_id, now=_NOW, locked_by="w1", error="late") is None


def test_terminal_jobs_cannot_be_finished_again() -> None:
    queue = InMemoryIngestionJobQueue()
    job_id = queue.enqueue_payload(payload={"key": "0xaa"}, now=_NOW)
    queue.claim_next(now=_NOW, locked_by="w1", lease_seconds=10)

    done = queue.complete(job_id=job_id, now=_NOW, locked_by="w1", result={"status": "written"})

    assert done is not None and done.state == "succeeded"
    assert queue.result_of(job_id=job_id) == {"status": "written"}
    assert queue.complete(job_id=job_id, now=_NOW, locked_by="w1", result={}) is None


def test_queue_rejects_non_positive_attempt_budget() -> None:
    with pytest.raises(ValueError):
        InMemoryIngestionJobQueue(max_attempts=0)
