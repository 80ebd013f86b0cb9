from .commit_result import CommitResult
from .fan_out import FanOutReason, FanOutReport, FanOutTask
from .ingestion_outcome import (
    IngestionOutcome,
    IngestionOutcomeStatus,
    IngestionRejectionReason,
)

__all__ = [
    "CommitResult",
    "FanOutReason",
    "FanOutReport",
    "FanOutTask",
    "IngestionOutcome",
    "IngestionOutcomeStatus",
    "IngestionRejectionReason",
]
