from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from pricehistory.shared_kernel.primitives import SeriesKey


class PriceHistoryError(RuntimeError):
    """
    Base error for the price history bounded context.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/errors.py
      - src/pricehistory/platform/errors/platform_error.py
    """


class PriceSourceError(PriceHistoryError):
    """
    Raised when the upstream price quote service cannot return a batch.

    The handler never retries this failure itself; the job queue reschedules the job.
    """

    def __init__(self, message: str, *, key: SeriesKey, start_day: date) -> None:
        super().__init__(message)
        self._key = key
        self._start_day = start_day

    @property
    def key(self) -> SeriesKey:
        return self._key

    @property
    def start_day(self) -> date:
        return self._start_day


class StoreUnavailableError(PriceHistoryError):
    """
    Raised when the series store cannot be reached or fails for a non-conflict reason.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        series_store.py
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
    """


class WriteConflictError(PriceHistoryError):
    """
    Raised by store transactions on serialization, deadlock or unique-key collisions.

    Absorbed by the commit engine retry loop and never surfaced by the handler.
    """

    def __init__(self, message: str, *, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self._sqlstate = sqlstate

    @property
    def sqlstate(self) -> str | None:
        return self._sqlstate


class CommitRetriesExhaustedError(StoreUnavailableError):
    """
    Raised when every commit attempt ended with a write conflict.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
    """

    def __init__(self, *, key: SeriesKey, attempts: int) -> None:
        """
        Build exhaustion error carrying key and attempt count.

        Args:
            key: Series key whose commit kept conflicting.
            attempts: Number of attempts performed.
        Returns:
            None.
        Assumptions:
            `attempts` equals configured `commit_max_attempts`.
        Raises:
            None.
        Side Effects:
            None.
        """
        super().__init__(f"commit for key={key} exhausted after {attempts} attempts")
        self._key = key
        self._attempts = attempts

    @property
    def key(self) -> SeriesKey:
        return self._key

    @property
    def attempts(self) -> int:
        return self._attempts


class IngestionJobPayloadError(PriceHistoryError, ValueError):
    """
    Raised when a queued or submitted job payload violates the job wire contract.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
      - apps/api/dto/ingestion_jobs.py
    """

    def __init__(
        self,
        message: str,
        *,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self._details = dict(details) if details is not None else {}

    @property
    def details(self) -> Mapping[str, Any]:
        return self._details


class IngestionJobTransitionError(PriceHistoryError):
    """
    Raised when a queue state transition is rejected (lost lease or wrong state).

    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        ingestion_job_queue.py
    """
