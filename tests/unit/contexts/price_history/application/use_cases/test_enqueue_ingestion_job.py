from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from pricehistory.contexts.price_history.adapters.outbound.persistence.in_memory import (
    InMemoryIngestionJobQueue,
)
from pricehistory.contexts.price_history.application.use_cases import EnqueueIngestionJobUseCase
from pricehistory.contexts.price_history.domain.entities import IngestionJob
from pricehistory.shared_kernel.primitives import SeriesKey

_NOW = datetime(2023, 6, 25, 8, 0, tzinfo=timezone.utc)


class _FixedClock:
    def now(self) -> datetime:
        return _NOW


def test_enqueue_stores_job_payload_as_queued_without_dedup() -> None:
    queue = InMemoryIngestionJobQueue(max_attempts=4)
    use_case = EnqueueIngestionJobUseCase(queue=queue, clock=_FixedClock())
    job = IngestionJob(key=SeriesKey("0xAA"), force_refresh=True, requested_start=date(2023, 6, 1))

    first_id = use_case.execute(job=job)
    second_id = use_case.execute(job=job)

    stored = queue.get(job_id=first_id)
    assert first_id != second_id
    assert stored is not None
    assert stored.state == "queued"
    assert stored.attempt == 0
    assert stored.max_attempts == 4
    assert stored.available_at == _NOW
    assert stored.payload == {
        "key": "0xaa",
        "forceRefresh": True,
        "requestedStart": "2023-06-01",
    }


def test_enqueue_use_case_requires_queue_and_clock() -> None:
    with pytest.raises(ValueError):
        EnqueueIngestionJobUseCase(queue=None, clock=_FixedClock())  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        EnqueueIngestionJobUseCase(
            queue=InMemoryIngestionJobQueue(),
            clock=None,  # type: ignore[arg-type]
        )
