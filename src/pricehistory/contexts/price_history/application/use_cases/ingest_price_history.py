from __future__ import annotations

import logging
from typing import Literal

from pricehistory.contexts.price_history.application.dto import IngestionOutcome
from pricehistory.contexts.price_history.application.ports import PriceSource
from pricehistory.contexts.price_history.application.services import (
    IdempotentCommitEngine,
    WatermarkResolver,
)
from pricehistory.contexts.price_history.domain.entities import IngestionJob
from pricehistory.contexts.price_history.domain.services import BatchValidator
from pricehistory.contexts.price_history.domain.value_objects import Watermark

_LOG = logging.getLogger(__name__)

IngestionState = Literal["fetching", "resolving", "validating", "committing", "done"]


class IngestPriceHistoryUseCase:
    """
    Handle one ingestion job for one series key.

    Flow: fetch -> resolve watermark -> validate batch start -> commit.

    The watermark read here is advisory and only drives the early rejection; the commit
    engine re-reads it inside its own transaction and is the only authority on what gets
    written. Concurrent or duplicate jobs for the same key are therefore safe.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
      - src/pricehistory/contexts/price_history/domain/services/batch_validator.py
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
    """

    def __init__(
        self,
        *,
        price_source: PriceSource,
        watermark_resolver: WatermarkResolver,
        commit_engine: IdempotentCommitEngine,
        batch_validator: BatchValidator | None = None,
    ) -> None:
        if price_source is None:  # type: ignore[truthy-bool]
            raise ValueError("IngestPriceHistoryUseCase requires price_source")
        if watermark_resolver is None:  # type: ignore[truthy-bool]
            raise ValueError("IngestPriceHistoryUseCase requires watermark_resolver")
        if commit_engine is None:  # type: ignore[truthy-bool]
            raise ValueError("IngestPriceHistoryUseCase requires commit_engine")
        self._price_source = price_source
        self._watermark_resolver = watermark_resolver
        self._commit_engine = commit_engine
        self._batch_validator = batch_validator or BatchValidator()

    def handle(self, *, job: IngestionJob) -> IngestionOutcome:
        """
        Run one job to a terminal outcome.

        Args:
            job: Decoded ingestion job.
        Returns:
            IngestionOutcome: `written` (possibly with zero inserted rows) or `rejected`
            with reason `empty_batch` / `gap_or_overlap`.
        Assumptions:
            The handler is strictly sequential; no retries around the fetch.
        Raises:
            PriceSourceError: When the quote fetch fails.
            StoreUnavailableError: On storage failures, including exhausted commit retries.
        Side Effects:
            One outbound fetch; at most one committed series write.
        """
        key = job.key
        self._log_state(job=job, state="fetching")
        batch = self._price_source.fetch_daily(key=key, start_day=job.requested_start)
        if batch.is_empty:
            self._log_state(job=job, state="done", detail="rejected reason=empty_batch")
            return IngestionOutcome.rejected(reason="empty_batch")

        self._log_state(job=job, state="resolving")
        watermark = self._watermark_resolver.resolve(key=key)

        self._log_state(job=job, state="validating", detail=f"watermark={watermark}")
        # refresh purges the key inside the commit, so validate as for a new series
        effective_watermark = Watermark.absent() if job.force_refresh else watermark
        validation = self._batch_validator.validate(watermark=effective_watermark, batch=batch)
        if not validation.accepted:
            _LOG.info(
                "event=batch_rejected key=%s reason=%s relation=%s expected_start=%s "
                "actual_start=%s",
                key,
                validation.reason,
                validation.relation,
                validation.expected_start,
                validation.actual_start,
            )
            self._log_state(job=job, state="done", detail="rejected reason=gap_or_overlap")
            return IngestionOutcome.rejected(reason="gap_or_overlap")

        self._log_state(job=job, state="committing", detail=f"quotes={len(batch)}")
        result = self._commit_engine.commit(
            key=key,
            force_refresh=job.force_refresh,
            batch=batch,
        )
        self._log_state(
            job=job,
            state="done",
            detail=(
                f"written inserted={result.inserted} deleted={result.deleted} "
                f"attempts={result.attempts}"
            ),
        )
        return IngestionOutcome.written(
            inserted=result.inserted,
            deleted=result.deleted,
            attempts=result.attempts,
        )

    def _log_state(self, *, job: IngestionJob, state: IngestionState, detail: str = "") -> None:
        _LOG.debug(
            "event=state key=%s state=%s force_refresh=%s requested_start=%s %s",
            job.key,
            state,
            job.force_refresh,
            job.requested_start.isoformat(),
            detail,
        )
