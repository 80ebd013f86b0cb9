from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal
from uuid import UUID

from pricehistory.contexts.price_history.application.dto import IngestionOutcome
from pricehistory.contexts.price_history.application.ports import (
    Clock,
    IngestionJobPayloadDecoder,
    IngestionJobQueue,
)
from pricehistory.contexts.price_history.application.use_cases.ingest_price_history import (
    IngestPriceHistoryUseCase,
)
from pricehistory.contexts.price_history.domain.entities import QueuedIngestionJob
from pricehistory.contexts.price_history.domain.errors import (
    IngestionJobPayloadError,
    PriceSourceError,
    StoreUnavailableError,
)

_LOG = logging.getLogger(__name__)

IngestionJobRunStatus = Literal[
    "succeeded",
    "rejected",
    "failed",
    "retry_scheduled",
    "lease_lost",
]


@dataclass(frozen=True, slots=True)
class IngestionJobRunReport:
    """
    Result of processing one claimed queue job, consumed by worker metrics and logs.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
    """

    job_id: UUID
    attempt: int
    status: IngestionJobRunStatus
    outcome: IngestionOutcome | None = None
    error: str | None = None


class ProcessIngestionJobUseCase:
    """
    Drive one claimed queue job to its queue end state.

    - malformed payload: job failed, no retry
    - `written` / `rejected` outcome: job succeeded (rejection is a normal outcome)
    - fetch or storage failure: job rescheduled while attempts remain, failed otherwise
    - any other exception propagates to the worker loop; the lease expires and the job is
      redelivered

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
      - src/pricehistory/contexts/price_history/application/ports/ingestion_job_queue.py
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
    """

    def __init__(
        self,
        *,
        queue: IngestionJobQueue,
        decoder: IngestionJobPayloadDecoder,
        handler: IngestPriceHistoryUseCase,
        clock: Clock,
        retry_delay_seconds: float,
    ) -> None:
        """
        Validate and store collaborators.

        Args:
            queue: Job queue for finishing transitions.
            decoder: Raw payload decoder.
            handler: Ingestion handler.
            clock: UTC clock.
            retry_delay_seconds: Delay before a failed attempt becomes claimable again.
        Returns:
            None.
        Assumptions:
            Same queue instance that produced the claimed job.
        Raises:
            ValueError: If a dependency is missing or the delay is negative.
        Side Effects:
            None.
        """
        if queue is None:  # type: ignore[truthy-bool]
            raise ValueError("ProcessIngestionJobUseCase requires queue")
        if decoder is None:  # type: ignore[truthy-bool]
            raise ValueError("ProcessIngestionJobUseCase requires decoder")
        if handler is None:  # type: ignore[truthy-bool]
            raise ValueError("ProcessIngestionJobUseCase requires handler")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("ProcessIngestionJobUseCase requires clock")
        if retry_delay_seconds < 0:
            raise ValueError("ProcessIngestionJobUseCase.retry_delay_seconds must be >= 0")
        self._queue = queue
        self._decoder = decoder
        self._handler = handler
        self._clock = clock
        self._retry_delay = timedelta(seconds=retry_delay_seconds)

    def process_claimed_job(
        self,
        *,
        job: QueuedIngestionJob,
        locked_by: str,
    ) -> IngestionJobRunReport:
        """
        Decode, handle and finish one claimed job.

        Args:
            job: Claimed running job.
            locked_by: Lease owner identity of this worker.
        Returns:
            IngestionJobRunReport: Final status of this attempt.
        Assumptions:
            Job was claimed by `locked_by`; a lost lease is reported, not raised.
        Raises:
            Exception: Unexpected handler errors propagate to the caller.
        Side Effects:
            Runs the ingestion handler and one queue finishing transition.
        """
        if job.attempt > job.max_attempts:
            message = f"attempt budget exhausted after lease expiry (attempt={job.attempt})"
            return self._fail(job=job, locked_by=locked_by, error=message)

        try:
            ingestion_job = self._decoder.decode(payload=job.payload)
        except IngestionJobPayloadError as error:
            _LOG.warning(
                "event=job_payload_invalid job_id=%s error=%s",
                job.job_id,
                error,
            )
            return self._fail(job=job, locked_by=locked_by, error=f"invalid payload: {error}")

        try:
            outcome = self._handler.handle(job=ingestion_job)
        except (PriceSourceError, StoreUnavailableError) as error:
            message = f"{type(error).__name__}: {error}"
            if job.is_last_attempt:
                return self._fail(job=job, locked_by=locked_by, error=message)
            return self._reschedule(job=job, locked_by=locked_by, error=message)

        updated = self._queue.complete(
            job_id=job.job_id,
            now=self._clock.now(),
            locked_by=locked_by,
            result=outcome.to_mapping(),
        )
        if updated is None:
            return self._lease_lost(job=job, outcome=outcome)
        return IngestionJobRunReport(
            job_id=job.job_id,
            attempt=job.attempt,
            status="succeeded" if outcome.status == "written" else "rejected",
            outcome=outcome,
        )

    def _fail(
        self,
        *,
        job: QueuedIngestionJob,
        locked_by: str,
        error: str,
    ) -> IngestionJobRunReport:
        updated = self._queue.fail(
            job_id=job.job_id,
            now=self._clock.now(),
            locked_by=locked_by,
            error=error,
        )
        if updated is None:
            return self._lease_lost(job=job, error=error)
        return IngestionJobRunReport(
            job_id=job.job_id,
            attempt=job.attempt,
            status="failed",
            error=error,
        )

    def _reschedule(
        self,
        *,
        job: QueuedIngestionJob,
        locked_by: str,
        error: str,
    ) -> IngestionJobRunReport:
        now = self._clock.now()
        updated = self._queue.reschedule(
            job_id=job.job_id,
            now=now,
            locked_by=locked_by,
            error=error,
            available_at=now + self._retry_delay,
        )
        if updated is None:
            return self._lease_lost(job=job, error=error)
        return IngestionJobRunReport(
            job_id=job.job_id,
            attempt=job.attempt,
            status="retry_scheduled",
            error=error,
        )

    def _lease_lost(
        self,
        *,
        job: QueuedIngestionJob,
        outcome: IngestionOutcome | None = None,
        error: str | None = None,
    ) -> IngestionJobRunReport:
        _LOG.warning("event=lease_lost job_id=%s attempt=%s", job.job_id, job.attempt)
        return IngestionJobRunReport(
            job_id=job.job_id,
            attempt=job.attempt,
            status="lease_lost",
            outcome=outcome,
            error=error,
        )
