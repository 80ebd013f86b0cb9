from __future__ import annotations

import logging

from pricehistory.contexts.price_history.application.dto import CommitResult
from pricehistory.contexts.price_history.application.ports import SeriesStore, Sleeper
from pricehistory.contexts.price_history.application.services.watermark_resolver import (
    resolve_watermark,
)
from pricehistory.contexts.price_history.domain.errors import (
    CommitRetriesExhaustedError,
    WriteConflictError,
)
from pricehistory.contexts.price_history.domain.services import contiguous_prefix
from pricehistory.contexts.price_history.domain.value_objects import FetchedBatch
from pricehistory.shared_kernel.primitives import SeriesKey

log = logging.getLogger(__name__)

DEFAULT_COMMIT_MAX_ATTEMPTS = 5
DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS = 0.05


class IdempotentCommitEngine:
    """
    Atomic, replay-safe write of one fetched batch into a series.

    Every attempt runs in one store transaction:
    1. purge the key when `force_refresh` is set;
    2. re-read the watermark inside the transaction;
    3. keep only the consecutive-day run starting right after it (or at the batch start
       for an empty series);
    4. insert with skip-existing semantics.

    Write conflicts roll the attempt back and the whole transaction is retried with linear
    backoff. Concurrent or repeated commits for the same key therefore converge to the
    same gap-free series without any external lock.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/series_store.py
      - src/pricehistory/contexts/price_history/domain/services/contiguous_prefix.py
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
    """

    def __init__(
        self,
        *,
        store: SeriesStore,
        sleeper: Sleeper,
        max_attempts: int = DEFAULT_COMMIT_MAX_ATTEMPTS,
        retry_backoff_seconds: float = DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS,
    ) -> None:
        """
        Validate and store engine dependencies.

        Args:
            store: Transactional series store.
            sleeper: Backoff sleeper.
            max_attempts: Maximum transaction attempts per commit.
            retry_backoff_seconds: Base backoff; attempt `n` waits `n * base` seconds.
        Returns:
            None.
        Assumptions:
            Store transactions surface conflicts as `WriteConflictError`.
        Raises:
            ValueError: If dependencies are missing or retry settings are invalid.
        Side Effects:
            None.
        """
        if store is None:  # type: ignore[truthy-bool]
            raise ValueError("IdempotentCommitEngine requires store")
        if sleeper is None:  # type: ignore[truthy-bool]
            raise ValueError("IdempotentCommitEngine requires sleeper")
        if max_attempts <= 0:
            raise ValueError("IdempotentCommitEngine.max_attempts must be > 0")
        if retry_backoff_seconds < 0:
            raise ValueError("IdempotentCommitEngine.retry_backoff_seconds must be >= 0")
        self._store = store
        self._sleeper = sleeper
        self._max_attempts = max_attempts
        self._retry_backoff_seconds = retry_backoff_seconds

    def commit(
        self,
        *,
        key: SeriesKey,
        force_refresh: bool,
        batch: FetchedBatch,
    ) -> CommitResult:
        """
        Commit batch for key, retrying the whole transaction on write conflicts.

        Args:
            key: Series key.
            force_refresh: Purge every stored row before inserting.
            batch: Non-empty, strictly ascending fetched batch.
        Returns:
            CommitResult: Rows inserted, rows deleted and attempts used.
        Assumptions:
            Rejected batches never reach the engine; the handler validates first.
        Raises:
            ValueError: If `batch` is empty.
            CommitRetriesExhaustedError: If every attempt ended with a write conflict.
            StoreUnavailableError: On non-conflict storage failures (not retried).
        Side Effects:
            Writes to the series store; sleeps between attempts.
        """
        if batch.is_empty:
            raise ValueError("IdempotentCommitEngine.commit requires a non-empty batch")

        attempt = 0
        while True:
            attempt += 1
            try:
                inserted, deleted = self._commit_once(
                    key=key,
                    force_refresh=force_refresh,
                    batch=batch,
                )
            except WriteConflictError as error:
                if attempt >= self._max_attempts:
                    log.warning(
                        "event=commit_retries_exhausted key=%s attempts=%s sqlstate=%s",
                        key,
                        attempt,
                        error.sqlstate,
                    )
                    raise CommitRetriesExhaustedError(key=key, attempts=attempt) from error
                log.info(
                    "event=commit_conflict key=%s attempt=%s sqlstate=%s",
                    key,
                    attempt,
                    error.sqlstate,
                )
                self._sleeper.sleep(seconds=self._retry_backoff_seconds * attempt)
                continue
            return CommitResult(inserted=inserted, deleted=deleted, attempts=attempt)

    def _commit_once(
        self,
        *,
        key: SeriesKey,
        force_refresh: bool,
        batch: FetchedBatch,
    ) -> tuple[int, int]:
        with self._store.unit_of_work() as transaction:
            deleted = transaction.delete_series(key=key) if force_refresh else 0
            watermark = resolve_watermark(reader=transaction, key=key)
            start_day = batch.first_day if watermark.is_absent else watermark.next_day()
            quotes = contiguous_prefix(batch=batch, start_day=start_day)
            inserted = 0
            if quotes:
                inserted = transaction.insert_missing(key=key, quotes=quotes)
            log.debug(
                "event=commit_attempt key=%s watermark=%s start_day=%s selected=%s inserted=%s",
                key,
                watermark,
                start_day.isoformat(),
                len(quotes),
                inserted,
            )
        return inserted, deleted
