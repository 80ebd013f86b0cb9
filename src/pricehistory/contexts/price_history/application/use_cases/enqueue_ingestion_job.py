from __future__ import annotations

import logging
from uuid import UUID

from pricehistory.contexts.price_history.application.ports import Clock, IngestionJobQueue
from pricehistory.contexts.price_history.domain.entities import IngestionJob

log = logging.getLogger(__name__)


class EnqueueIngestionJobUseCase:
    """
    Put one ingestion job on the shared queue (admin trigger and CLI).

    No de-duplication is attempted: duplicate jobs are safe to process.
    """

    def __init__(self, *, queue: IngestionJobQueue, clock: Clock) -> None:
        if queue is None:  # type: ignore[truthy-bool]
            raise ValueError("EnqueueIngestionJobUseCase requires queue")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("EnqueueIngestionJobUseCase requires clock")
        self._queue = queue
        self._clock = clock

    def execute(self, *, job: IngestionJob) -> UUID:
        job_id = self._queue.enqueue(job=job, now=self._clock.now())
        log.info(
            "event=job_enqueued job_id=%s key=%s force_refresh=%s requested_start=%s",
            job_id,
            job.key,
            job.force_refresh,
            job.requested_start.isoformat(),
        )
        return job_id
