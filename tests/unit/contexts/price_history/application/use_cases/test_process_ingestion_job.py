from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping

import pytest

from pricehistory.contexts.price_history.adapters.outbound.persistence.in_memory import (
    InMemoryIngestionJobQueue,
)
from pricehistory.contexts.price_history.application.dto import IngestionOutcome
from pricehistory.contexts.price_history.application.use_cases import ProcessIngestionJobUseCase
from pricehistory.contexts.price_history.domain.entities import IngestionJob, QueuedIngestionJob
from pricehistory.contexts.price_history.domain.errors import (
    CommitRetriesExhaustedError,
    IngestionJobPayloadError,
    PriceSourceError,
)
from pricehistory.shared_kernel.primitives import SeriesKey

_START = datetime(2023, 6, 25, 8, 0, tzinfo=timezone.utc)
_WORKER = "worker-a"


class _MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now_value = now

    def now(self) -> datetime:
        return self.now_value


class _FakeDecoder:
    def decode(self, *, payload: Mapping[str, Any]) -> IngestionJob:
        if "key" not in payload:
            raise IngestionJobPayloadError("ingestion job payload is invalid")
        return IngestionJob(
            key=SeriesKey(str(payload["key"])),
            force_refresh=bool(payload.get("forceRefresh", False)),
            requested_start=date.fromisoformat(str(payload["requestedStart"])),
        )


class _FakeHandler:
    """
    Ingestion handler fake returning queued outcomes or raising queued errors.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
    """

    def __init__(self, *results: IngestionOutcome | Exception) -> None:
        self._results = list(results)
        self.jobs: list[IngestionJob] = []

    def handle(self, *, job: IngestionJob) -> IngestionOutcome:
        self.jobs.append(job)
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _enqueue(queue: InMemoryIngestionJobQueue, payload: Mapping[str, Any] | None = None) -> None:
    queue.enqueue_payload(
        payload=payload
        if payload is not None
        else {"key": "0xaa", "forceRefresh": False, "requestedStart": "2023-06-22"},
        now=_START,
    )


def _claim(queue: InMemoryIngestionJobQueue, clock: _MutableClock) -> QueuedIngestionJob:
    claimed = queue.claim_next(now=clock.now(), locked_by=_WORKER, lease_seconds=30)
    assert claimed is not None
    return claimed


def _processor(
    *,
    queue: InMemoryIngestionJobQueue,
    handler: _FakeHandler,
    clock: _MutableClock,
    retry_delay_seconds: float = 10,
) -> ProcessIngestionJobUseCase:
    return ProcessIngestionJobUseCase(
        queue=queue,
        decoder=_FakeDecoder(),
        handler=handler,  # type: ignore[arg-type]
        clock=clock,
        retry_delay_seconds=retry_delay_seconds,
    )


def test_written_outcome_completes_job_with_result() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    clock = _MutableClock(_START)
    _enqueue(queue)
    job = _claim(queue, clock)
    handler = _FakeHandler(IngestionOutcome.written(inserted=3, deleted=0, attempts=1))

    report = _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
        job=job,
        locked_by=_WORKER,
    )

    assert report.status == "succeeded"
    assert report.outcome is not None and report.outcome.inserted == 3
    assert handler.jobs[0].requested_start == date(2023, 6, 22)
    assert queue.get(job_id=job.job_id).state == "succeeded"
    assert queue.result_of(job_id=job.job_id) == {
        "status": "written",
        "reason": None,
        "inserted": 3,
        "deleted": 0,
        "attempts": 1,
    }


def test_rejected_outcome_is_a_successful_queue_completion() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    clock = _MutableClock(_START)
    _enqueue(queue)
    job = _claim(queue, clock)
    handler = _FakeHandler(IngestionOutcome.rejected(reason="gap_or_overlap"))

    report = _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
        job=job,
        locked_by=_WORKER,
    )

    assert report.status == "rejected"
    assert queue.get(job_id=job.job_id).state == "succeeded"


def test_fetch_failure_reschedules_job_while_attempts_remain() -> None:
    """
    Verify a transient fetch failure puts the job back on the queue after the retry delay.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        First attempt of three; retry delay is 10 seconds.
    Raises:
        AssertionError: If the job is failed or becomes due immediately.
    Side Effects:
        None.
    """
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    clock = _MutableClock(_START)
    _enqueue(queue)
    job = _claim(queue, clock)
    handler = _FakeHandler(
        PriceSourceError("HTTP 503", key=SeriesKey("0xaa"), start_day=date(2023, 6, 22)),
        IngestionOutcome.written(inserted=3, deleted=0, attempts=1),
    )
    processor = _processor(queue=queue, handler=handler, clock=clock)

    report = processor.process_claimed_job(job=job, locked_by=_WORKER)

    stored = queue.get(job_id=job.job_id)
    assert report.status == "retry_scheduled"
    assert report.error == "PriceSourceError: HTTP 503"
    assert stored.state == "queued"
    assert stored.last_error == "PriceSourceError: HTTP 503"
    assert stored.available_at == _START + timedelta(seconds=10)
    assert queue.claim_next(now=_START, locked_by=_WORKER, lease_seconds=30) is None

    clock.now_value = _START + timedelta(seconds=10)
    retried = _claim(queue, clock)
    assert retried.attempt == 2
    assert processor.process_claimed_job(job=retried, locked_by=_WORKER).status == "succeeded"


def test_storage_failure_on_last_attempt_fails_job() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=1)
    clock = _MutableClock(_START)
    _enqueue(queue)
    job = _claim(queue, clock)
    handler = _FakeHandler(CommitRetriesExhaustedError(key=SeriesKey("0xaa"), attempts=5))

    report = _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
        job=job,
        locked_by=_WORKER,
    )

    assert report.status == "failed"
    assert report.error is not None
    assert report.error.startswith("CommitRetriesExhaustedError:")
    assert queue.get(job_id=job.job_id).state == "failed"


def test_malformed_payload_fails_job_without_calling_handler() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    clock = _MutableClock(_START)
    _enqueue(queue, {"forceRefresh": False})
    job = _claim(queue, clock)
    handler = _FakeHandler()

    report = _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
        job=job,
        locked_by=_WORKER,
    )

    assert report.status == "failed"
    assert report.error == "invalid payload: ingestion job payload is invalid"
    assert handler.jobs == []
    assert queue.get(job_id=job.job_id).state == "failed"


def test_redelivery_past_attempt_budget_fails_job() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=1)
    clock = _MutableClock(_START)
    _enqueue(queue)
    _claim(queue, clock)
    clock.now_value = _START + timedelta(seconds=31)
    redelivered = _claim(queue, clock)
    handler = _FakeHandler()

    report = _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
        job=redelivered,
        locked_by=_WORKER,
    )

    assert redelivered.attempt == 2
    assert report.status == "failed"
    assert handler.jobs == []


def test_lost_lease_is_reported_not_raised() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    clock = _MutableClock(_START)
    _enqueue(queue)
    job = _claim(queue, clock)
    queue.claim_next(
        now=_START + timedelta(seconds=31),
        locked_by="worker-b",
        lease_seconds=30,
    )
    handler = _FakeHandler(IngestionOutcome.written(inserted=0, deleted=0, attempts=1))

    report = _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
        job=job,
        locked_by=_WORKER,
    )

    assert report.status == "lease_lost"
    assert queue.get(job_id=job.job_id).locked_by == "worker-b"


def test_unexpected_handler_error_propagates() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    clock = _MutableClock(_START)
    _enqueue(queue)
    job = _claim(queue, clock)
    handler = _FakeHandler(RuntimeError("bug"))

    with pytest.raises(RuntimeError, match="bug"):
        _processor(queue=queue, handler=handler, clock=clock).process_claimed_job(
            job=job,
            locked_by=_WORKER,
        )

    assert queue.get(job_id=job.job_id).state == "running"


def test_processor_rejects_negative_retry_delay() -> None:
    with pytest.raises(ValueError):
        _processor(
            queue=InMemoryIngestionJobQueue(),
            handler=_FakeHandler(),
            clock=_MutableClock(_START),
            retry_delay_seconds=-1,
        )
