from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Mapping, cast
from uuid import UUID, uuid4

from pricehistory.contexts.price_history.adapters.outbound.persistence.postgres.errors import (
    is_driver_error,
)
from pricehistory.contexts.price_history.adapters.outbound.persistence.postgres.gateway import (
    PriceHistoryPostgresGateway,
)
from pricehistory.contexts.price_history.application.ports import IngestionJobQueue
from pricehistory.contexts.price_history.domain.entities import (
    IngestionJob,
    IngestionJobState,
    QueuedIngestionJob,
)
from pricehistory.contexts.price_history.domain.errors import StoreUnavailableError

DEFAULT_JOBS_TABLE = "price_history_ingestion_jobs"

_JOB_SELECT_COLUMNS = """
            job_id,
            payload_json,
            state,
            attempt,
            max_attempts,
            available_at,
            locked_by,
            lease_expires_at,
            last_error,
            created_at
"""

_JOB_STATES: frozenset[str] = frozenset({"queued", "running", "succeeded", "failed"})


class PostgresIngestionJobQueue(IngestionJobQueue):
    """
    Explicit SQL adapter for the shared ingestion job queue (enqueue/claim/finish).

    Claims use `FOR UPDATE SKIP LOCKED` so concurrent workers never take the same row;
    running rows whose lease expired are reclaimable. Nothing here serializes jobs that
    target the same series key.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/ingestion_job_queue.py
      - src/pricehistory/contexts/price_history/domain/entities/ingestion_job.py
      - alembic/versions/20260301_0001_price_history_v1.py
    """

    def __init__(
        self,
        *,
        gateway: PriceHistoryPostgresGateway,
        max_attempts: int,
        jobs_table: str = DEFAULT_JOBS_TABLE,
    ) -> None:
        """
        Initialize queue adapter with SQL gateway, attempt budget and table name.

        Args:
            gateway: SQL gateway abstraction.
            max_attempts: Attempt budget stored on every enqueued job.
            jobs_table: Queue table name.
        Returns:
            None.
        Assumptions:
            Table schema follows the price history v1 migration.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresIngestionJobQueue requires gateway")
        if isinstance(max_attempts, bool) or max_attempts <= 0:
            raise ValueError("PostgresIngestionJobQueue.max_attempts must be > 0")
        normalized_table = jobs_table.strip()
        if not normalized_table:
            raise ValueError("PostgresIngestionJobQueue requires non-empty jobs_table")
        self._gateway = gateway
        self._max_attempts = max_attempts
        self._jobs_table = normalized_table

    def enqueue(self, *, job: IngestionJob, now: datetime) -> UUID:
        query = f"""
        INSERT INTO {self._jobs_table}
        (
            job_id,
            payload_json,
            state,
            attempt,
            max_attempts,
            available_at,
            created_at,
            updated_at
        )
        VALUES
        (
            %(job_id)s,
            %(payload_json)s::jsonb,
            'queued',
            0,
            %(max_attempts)s,
            %(now)s,
            %(now)s,
            %(now)s
        )
        RETURNING job_id
        """
        row = self._fetch_one(
            query=query,
            parameters={
                "job_id": str(uuid4()),
                "payload_json": _json_dumps(payload=job.to_payload()),
                "max_attempts": self._max_attempts,
                "now": now,
            },
            operation="enqueue",
        )
        if row is None:
            raise StoreUnavailableError("PostgresIngestionJobQueue.enqueue returned no row")
        return UUID(str(row["job_id"]))

    def claim_next(
        self,
        *,
        now: datetime,
        locked_by: str,
        lease_seconds: int,
    ) -> QueuedIngestionJob | None:
        """
        Claim one due queued/reclaim candidate job using FIFO order and SKIP LOCKED semantics.

        Args:
            now: Claim timestamp in UTC.
            locked_by: Worker owner identity.
            lease_seconds: Lease duration in seconds.
        Returns:
            QueuedIngestionJob | None: Claimed running job or `None` when no rows are due.
        Assumptions:
            FIFO order is `available_at ASC, created_at ASC, job_id ASC` for queued jobs.
        Raises:
            StoreUnavailableError: If storage update or row mapping fails.
        Side Effects:
            Executes one SQL CTE statement with `FOR UPDATE SKIP LOCKED`.
        """
        normalized_owner = _normalize_locked_by(value=locked_by)
        lease_expires_at = now + timedelta(seconds=_validate_lease_seconds(value=lease_seconds))

        query = f"""
        WITH queued_candidate AS (
            SELECT
                job_id
            FROM {self._jobs_table}
            WHERE state = 'queued'
              AND available_at <= %(now)s
            ORDER BY available_at ASC, created_at ASC, job_id ASC
            LIMIT 1
            FOR UPDATE SKIP LOCKED
        ),
        reclaim_candidate AS (
            SELECT
                job_id
            FROM {self._jobs_table}
            WHERE state = 'running'
              AND lease_expires_at <= %(now)s
            ORDER BY lease_expires_at ASC, created_at ASC, job_id ASC
            LIMIT 1
            FOR UPDATE SKIP LOCKED
        ),
        candidate AS (
            SELECT job_id, 1 AS priority FROM queued_candidate
            UNION ALL
            SELECT job_id, 2 AS priority FROM reclaim_candidate
            ORDER BY priority ASC
            LIMIT 1
        ),
        claimed AS (
            UPDATE {self._jobs_table} AS jobs
            SET
                state = 'running',
                updated_at = %(now)s,
                locked_by = %(locked_by)s,
                lease_expires_at = %(lease_expires_at)s,
                attempt = jobs.attempt + 1
            FROM candidate
            WHERE jobs.job_id = candidate.job_id
            RETURNING
                {_JOB_SELECT_COLUMNS}
        )
        SELECT
            {_JOB_SELECT_COLUMNS}
        FROM claimed
        """
        row = self._fetch_one(
            query=query,
            parameters={
                "now": now,
                "locked_by": normalized_owner,
                "lease_expires_at": lease_expires_at,
            },
            operation="claim_next",
        )
        if row is None:
            return None
        return _map_job_row(row=row)

    def complete(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        result: Mapping[str, Any],
    ) -> QueuedIngestionJob | None:
        query = f"""
        UPDATE {self._jobs_table}
        SET
            state = 'succeeded',
            updated_at = %(now)s,
            finished_at = %(now)s,
            locked_by = NULL,
            lease_expires_at = NULL,
            last_error = NULL,
            result_json = %(result_json)s::jsonb
        WHERE job_id = %(job_id)s
          AND state = 'running'
          AND locked_by = %(locked_by)s
        RETURNING
            {_JOB_SELECT_COLUMNS}
        """
        row = self._fetch_one(
            query=query,
            parameters={
                "job_id": str(job_id),
                "now": now,
                "locked_by": _normalize_locked_by(value=locked_by),
                "result_json": _json_dumps(payload=result),
            },
            operation="complete",
        )
        if row is None:
            return None
        return _map_job_row(row=row)

    def fail(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        error: str,
    ) -> QueuedIngestionJob | None:
        query = f"""
        UPDATE {self._jobs_table}
        SET
            state = 'failed',
            updated_at = %(now)s,
            finished_at = %(now)s,
            locked_by = NULL,
            lease_expires_at = NULL,
            last_error = %(last_error)s
        WHERE job_id = %(job_id)s
          AND state = 'running'
          AND locked_by = %(locked_by)s
        RETURNING
            {_JOB_SELECT_COLUMNS}
        """
        row = self._fetch_one(
            query=query,
            parameters={
                "job_id": str(job_id),
                "now": now,
                "locked_by": _normalize_locked_by(value=locked_by),
                "last_error": _normalize_last_error(value=error),
            },
            operation="fail",
        )
        if row is None:
            return None
        return _map_job_row(row=row)

    def reschedule(
        self,
        *,
        job_id: UUID,
        now: datetime,
        locked_by: str,
        error: str,
        available_at: datetime,
    ) -> QueuedIngestionJob | None:
        """
        Return running job to `queued` so any worker can retry it after `available_at`.

        Args:
            job_id: Job identifier.
            now: Transition timestamp in UTC.
            locked_by: Worker owner identity.
            error: Failure summary of the attempt.
            available_at: Earliest redelivery timestamp.
        Returns:
            QueuedIngestionJob | None: Updated queued job or `None` when lease is lost.
        Assumptions:
            Attempt counter is kept; the next claim increments it.
        Raises:
            StoreUnavailableError: If storage update or row mapping fails.
        Side Effects:
            Executes one SQL update statement.
        """
        if available_at < now:
            raise ValueError("PostgresIngestionJobQueue.reschedule available_at must be >= now")
        query = f"""
        UPDATE {self._jobs_table}
        SET
            state = 'queued',
            updated_at = %(now)s,
            available_at = %(available_at)s,
            locked_by = NULL,
            lease_expires_at = NULL,
            last_error = %(last_error)s
        WHERE job_id = %(job_id)s
          AND state = 'running'
          AND locked_by = %(locked_by)s
        RETURNING
            {_JOB_SELECT_COLUMNS}
        """
        row = self._fetch_one(
            query=query,
            parameters={
                "job_id": str(job_id),
                "now": now,
                "available_at": available_at,
                "locked_by": _normalize_locked_by(value=locked_by),
                "last_error": _normalize_last_error(value=error),
            },
            operation="reschedule",
        )
        if row is None:
            return None
        return _map_job_row(row=row)

    def _fetch_one(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
        operation: str,
    ) -> Mapping[str, Any] | None:
        try:
            return self._gateway.fetch_one(query=query, parameters=parameters)
        except Exception as error:  # noqa: BLE001
            if not is_driver_error(error=error):
                raise
            raise StoreUnavailableError(
                f"PostgresIngestionJobQueue.{operation} failed: {error}"
            ) from error


def _map_job_row(*, row: Mapping[str, Any]) -> QueuedIngestionJob:
    """
    Map SQL row payload into immutable `QueuedIngestionJob`.

    Args:
        row: SQL row mapping.
    Returns:
        QueuedIngestionJob: Mapped queue record.
    Assumptions:
        Row schema follows the price history v1 queue contract.
    Raises:
        StoreUnavailableError: If one field cannot be mapped.
    Side Effects:
        None.
    """
    try:
        state = str(row["state"])
        if state not in _JOB_STATES:
            raise ValueError(f"unexpected job state value from storage: {state!r}")
        return QueuedIngestionJob(
            job_id=UUID(str(row["job_id"])),
            payload=_parse_json_object(value=row["payload_json"]),
            state=cast(IngestionJobState, state),
            attempt=int(row["attempt"]),
            max_attempts=int(row["max_attempts"]),
            created_at=row["created_at"],
            available_at=row["available_at"],
            locked_by=str(row["locked_by"]) if row.get("locked_by") is not None else None,
            lease_expires_at=row.get("lease_expires_at"),
            last_error=str(row["last_error"]) if row.get("last_error") is not None else None,
        )
    except Exception as error:  # noqa: BLE001
        raise StoreUnavailableError("PostgresIngestionJobQueue cannot map job row") from error


def _parse_json_object(*, value: Any) -> Mapping[str, Any]:
    if isinstance(value, (str, bytes, bytearray)):
        value = json.loads(value)
    if not isinstance(value, Mapping):
        raise ValueError("payload_json must be a JSON object")
    return dict(value)


def _json_dumps(*, payload: Mapping[str, Any]) -> str:
    return json.dumps(dict(payload), sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _normalize_locked_by(*, value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError("locked_by must be non-empty")
    return normalized


def _normalize_last_error(*, value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError("last_error must be non-empty")
    return normalized[:2000]


def _validate_lease_seconds(*, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("lease_seconds must be integer")
    if value <= 0:
        raise ValueError("lease_seconds must be > 0")
    return value


__all__ = ["DEFAULT_JOBS_TABLE", "PostgresIngestionJobQueue"]
