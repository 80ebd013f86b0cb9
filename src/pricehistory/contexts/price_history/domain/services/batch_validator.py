from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal

from pricehistory.contexts.price_history.domain.value_objects import FetchedBatch, Watermark

BatchRejectionReason = Literal["gap_or_overlap"]
BatchRelation = Literal["extends", "overlap", "gap", "new_series"]


@dataclass(frozen=True, slots=True)
class BatchValidation:
    """
    Result of checking where a batch starts relative to the stored series end.

    `accepted=False` is a normal outcome: the caller stops without writing.
    """

    accepted: bool
    relation: BatchRelation
    expected_start: date | None
    actual_start: date
    reason: BatchRejectionReason | None = None

    @classmethod
    def accept(
        cls,
        *,
        relation: BatchRelation,
        expected_start: date | None,
        actual_start: date,
    ) -> BatchValidation:
        return cls(
            accepted=True,
            relation=relation,
            expected_start=expected_start,
            actual_start=actual_start,
        )

    @classmethod
    def reject(
        cls,
        *,
        relation: BatchRelation,
        expected_start: date,
        actual_start: date,
    ) -> BatchValidation:
        return cls(
            accepted=False,
            relation=relation,
            expected_start=expected_start,
            actual_start=actual_start,
            reason="gap_or_overlap",
        )


class BatchValidator:
    """
    Accepts a batch only when it starts exactly one day after the watermark.

    Only the first quote is inspected. An absent watermark accepts any non-empty batch.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
      - src/pricehistory/contexts/price_history/domain/value_objects/watermark.py
    """

    def validate(self, *, watermark: Watermark, batch: FetchedBatch) -> BatchValidation:
        """
        Decide whether the batch may extend the series ending at `watermark`.

        Args:
            watermark: Current series end (absent for a new or purged series).
            batch: Non-empty fetched batch.
        Returns:
            BatchValidation: Accepted or rejected decision with start-day diagnostics.
        Assumptions:
            Empty batches are handled by the caller before validation.
        Raises:
            ValueError: If `batch` is empty.
        Side Effects:
            None.
        """
        actual_start = batch.first_day
        if watermark.is_absent:
            return BatchValidation.accept(
                relation="new_series",
                expected_start=None,
                actual_start=actual_start,
            )

        expected_start = watermark.next_day()
        if actual_start == expected_start:
            return BatchValidation.accept(
                relation="extends",
                expected_start=expected_start,
                actual_start=actual_start,
            )
        return BatchValidation.reject(
            relation="overlap" if actual_start < expected_start else "gap",
            expected_start=expected_start,
            actual_start=actual_start,
        )
