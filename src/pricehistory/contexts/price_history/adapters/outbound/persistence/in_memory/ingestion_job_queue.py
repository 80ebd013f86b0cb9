from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Mapping
from uuid import UUID, uuid4

from pricehistory.contexts.price_history.application.ports import IngestionJobQueue
from pricehistory.contexts.price_history.domain.entities import (
    IngestionJob,
    QueuedIngestionJob,
    ensure_job_state_transition,
)


class InMemoryIngestionJobQueue(IngestionJobQueue):
    """
    Deterministic process-local queue with lease semantics.

    Mirrors the Postgres claim order: due queued jobs first (FIFO), then expired leases.
    """

    def __init__(self, *, max_attempts: int = 3) -> None:
        if max_attempts <= 0:
            raise ValueError("InMemoryIngestionJobQueue.max_attempts must be > 0")
        self._max_attempts = max_attempts
        self._jobs: dict[UUID, QueuedIngestionJob] = {}
        self._results: dict[UUID, Mapping[str, Any]] = {}
        self._lock = threading.Lock()

    def enqueue(self, *, job: IngestionJob, now: datetime) -> UUID:
        return self.enqueue_payload(payload=job.to_payload(), now=now)

    def enqueue_payload(self, *, payload: Mapping[str, Any], now: datetime) -> UUID:
        """Enqueue a raw payload as-is (used to exercise payload decoding)."""
        job_id = uuid4()
        with self._lock:
            self._jobs[job_id] = QueuedIngestionJob(
                job_id=job_id,
                payload=dict(payload),
                state="queued",
                attempt=0,
                max_attempts=self._max_attempts,
                created_at=now,
                available_at=now,
            )
        return job_id

    def claim_next(
        self,
        *,
        now: datetime,
        locked_by: str,
        lease_seconds: int,
    ) -> QueuedIngestionJob | None:
        with self._lock:
            queued = sorted(
                (
                    job
                    for job in self._jobs.values()
                    if job.state == "queued" and job.available_at <= now
                ),
                key=lambda job: (job.available_at, job.created_at, str(job.job_id)),
            )
            expired = sorted(
                (
                    job
                    for job in self._jobs.values()
                    if job.state == "running"
                    and job.lease_expires_at is not None
                    and job.lease_expires_at <= now
                ),
                key=lambda job: (job.lease_expires_at, job.created_at, str(job.job_id)),
            )
            candidates = queued + expired
            if not candidates:
                return None
            claimed = replace(
                candidates[0],
                state="running",
                attempt=candidates[0].attempt + 1,
                locked_by=locked_by,
                lease_expires_at=now + timedelta(seconds=lease_seconds),
            )
            self._jobs[claimed.job_id] = claimed
            return claimed

    def complete(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        result: Mapping[str, Any],
    ) -> QueuedIngestionJob | None:
        updated = self._finish(job_id=job_id, locked_by=locked_by, target="succeeded")
        if updated is not None:
            self._results[job_id] = dict(result)
        return updated

    def fail(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        error: str,
    ) -> QueuedIngestionJob | None:
        return self._finish(job_id=job_id, locked_by=locked_by, target="failed", error=error)

    def reschedule(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        error: str,
        available_at: datetime,
    ) -> QueuedIngestionJob | None:
        return self._finish(
            job_id=job_id,
            locked_by=locked_by,
            target="queued",
            error=error,
            available_at=available_at,
        )

    def get(self, *, job_id: UUID) -> QueuedIngestionJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def result_of(self, *, job_id: UUID) -> Mapping[str, Any] | None:
        return self._results.get(job_id)

    def _finish(
        self,
        *,
        job_id: UUID,
        locked_by: str,
        target: str,
        error: str | None = None,
        available_at: datetime | None = None,
    ) -> QueuedIngestionJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.state != "running" or job.locked_by != locked_by:
                return None
            ensure_job_state_transition(current=job.state, target=target)
            updated = replace(
                job,
                state=target,  # type: ignore[arg-type]
                locked_by=None,
                lease_expires_at=None,
                last_error=error,
                available_at=available_at if available_at is not None else job.available_at,
            )
            self._jobs[job_id] = updated
            return updated
