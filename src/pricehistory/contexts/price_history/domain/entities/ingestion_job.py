from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal, Mapping
from uuid import UUID

from pricehistory.contexts.price_history.domain.errors import IngestionJobTransitionError
from pricehistory.shared_kernel.primitives import SeriesKey

IngestionJobState = Literal["queued", "running", "succeeded", "failed"]

_ALLOWED_JOB_STATE_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"running"}),
    "running": frozenset({"queued", "succeeded", "failed"}),
    "succeeded": frozenset(),
    "failed": frozenset(),
}


@dataclass(frozen=True, slots=True)
class IngestionJob:
    """
    Immutable unit of work: append (or refresh) one series from a start day.

    Wire form: `{"key": str, "forceRefresh": bool, "requestedStart": "YYYY-MM-DD"}`.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
      - apps/api/dto/ingestion_jobs.py
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
    """

    key: SeriesKey
    force_refresh: bool
    requested_start: date

    def __post_init__(self) -> None:
        if not isinstance(self.key, SeriesKey):
            raise ValueError("IngestionJob.key must be SeriesKey")
        if not isinstance(self.force_refresh, bool):
            raise ValueError("IngestionJob.force_refresh must be bool")
        if isinstance(self.requested_start, datetime) or not isinstance(
            self.requested_start, date
        ):
            raise ValueError("IngestionJob.requested_start must be a date")

    def to_payload(self) -> dict[str, Any]:
        """
        Convert job into its JSON wire payload.

        Args:
            None.
        Returns:
            dict[str, Any]: Payload with `key`, `forceRefresh`, `requestedStart`.
        Assumptions:
            Payload is decoded back by the worker payload decoder.
        Raises:
            None.
        Side Effects:
            None.
        """
        return {
            "key": self.key.value,
            "forceRefresh": self.force_refresh,
            "requestedStart": self.requested_start.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class QueuedIngestionJob:
    """
    Queue record wrapping one raw job payload plus its delivery bookkeeping.

    Payload stays raw here; it is decoded into `IngestionJob` by the worker so that
    malformed payloads can be failed without reaching the handler.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/ingestion_job_queue.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        ingestion_job_queue.py
    """

    job_id: UUID
    payload: Mapping[str, Any]
    state: IngestionJobState
    attempt: int
    max_attempts: int
    created_at: datetime
    available_at: datetime
    locked_by: str | None = None
    lease_expires_at: datetime | None = None
    last_error: str | None = None

    def __post_init__(self) -> None:
        if self.state not in _ALLOWED_JOB_STATE_TRANSITIONS:
            raise IngestionJobTransitionError(f"unknown ingestion job state: {self.state!r}")
        if self.attempt < 0:
            raise IngestionJobTransitionError("QueuedIngestionJob.attempt must be >= 0")
        if self.max_attempts <= 0:
            raise IngestionJobTransitionError("QueuedIngestionJob.max_attempts must be > 0")

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


def ensure_job_state_transition(*, current: str, target: str) -> None:
    """
    Validate one queue state transition.

    Args:
        current: Current persisted state.
        target: Requested next state.
    Returns:
        None.
    Assumptions:
        Terminal states (`succeeded`, `failed`) never transition again.
    Raises:
        IngestionJobTransitionError: If transition is not allowed.
    Side Effects:
        None.
    """
    allowed = _ALLOWED_JOB_STATE_TRANSITIONS.get(current)
    if allowed is None or target not in allowed:
        raise IngestionJobTransitionError(
            f"ingestion job transition {current!r} -> {target!r} is not allowed"
        )
