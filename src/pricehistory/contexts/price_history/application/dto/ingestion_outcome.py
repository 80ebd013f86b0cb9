from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

IngestionOutcomeStatus = Literal["written", "rejected"]
IngestionRejectionReason = Literal["gap_or_overlap", "empty_batch"]


@dataclass(frozen=True, slots=True)
class IngestionOutcome:
    """
    Terminal result of one handled ingestion job.

    `written` covers commits that inserted nothing (idempotent replays). `rejected` means
    no write was attempted. Failures are raised, never returned.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
    """

    status: IngestionOutcomeStatus
    reason: IngestionRejectionReason | None = None
    inserted: int = 0
    deleted: int = 0
    attempts: int = 0

    def __post_init__(self) -> None:
        if self.status == "written" and self.reason is not None:
            raise ValueError("written outcome cannot carry a rejection reason")
        if self.status == "rejected" and self.reason is None:
            raise ValueError("rejected outcome requires a reason")

    @classmethod
    def written(cls, *, inserted: int, deleted: int, attempts: int) -> IngestionOutcome:
        return cls(status="written", inserted=inserted, deleted=deleted, attempts=attempts)

    @classmethod
    def rejected(cls, *, reason: IngestionRejectionReason) -> IngestionOutcome:
        return cls(status="rejected", reason=reason)

    def to_mapping(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reason": self.reason,
            "inserted": self.inserted,
            "deleted": self.deleted,
            "attempts": self.attempts,
        }
