from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol
from uuid import UUID

from pricehistory.contexts.price_history.domain.entities import (
    IngestionJob,
    QueuedIngestionJob,
)


class IngestionJobQueue(Protocol):
    """
    Shared non-exclusive job queue port for enqueue/claim/finish.

    The queue delivers each enqueued job once at a time but never serializes jobs that
    target the same series key.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        ingestion_job_queue.py
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
      - alembic/versions/20260301_0001_price_history_v1.py
    """

    def enqueue(self, *, job: IngestionJob, now: datetime) -> UUID:
        """
        Persist a new queued job and return its identifier.

        Args:
            job: Job to enqueue.
            now: Enqueue timestamp in UTC.
        Returns:
            UUID: New job identifier.
        Assumptions:
            Duplicate jobs for the same key are allowed.
        Raises:
            StoreUnavailableError: If storage write fails.
        Side Effects:
            Inserts one queue row.
        """
        ...

    def claim_next(
        self,
        *,
        now: datetime,
        locked_by: str,
        lease_seconds: int,
    ) -> QueuedIngestionJob | None:
        """
        Claim one available job using FIFO order and SKIP LOCKED semantics.

        Args:
            now: Claim timestamp in UTC.
            locked_by: Worker owner identity.
            lease_seconds: Lease TTL in seconds.
        Returns:
            QueuedIngestionJob | None: Claimed running job or `None` when nothing is due.
        Assumptions:
            Running jobs with expired leases are reclaimable.
        Raises:
            StoreUnavailableError: If storage write/read fails.
        Side Effects:
            Updates one queue row lease fields and increments its attempt.
        """
        ...

    def complete(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        result: Mapping[str, Any],
    ) -> QueuedIngestionJob | None:
        """Mark running job succeeded; `None` when the lease was lost."""
        ...

    def fail(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        error: str,
    ) -> QueuedIngestionJob | None:
        """Mark running job failed permanently; `None` when the lease was lost."""
        ...

    def reschedule(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        error: str,
        available_at: datetime,
    ) -> QueuedIngestionJob | None:
        """Return running job to `queued` for redelivery at `available_at`."""
        ...
