from .price_history_errors import (
    CommitRetriesExhaustedError,
    IngestionJobPayloadError,
    IngestionJobTransitionError,
    PriceHistoryError,
    PriceSourceError,
    StoreUnavailableError,
    WriteConflictError,
)

__all__ = [
    "CommitRetriesExhaustedError",
    "IngestionJobPayloadError",
    "IngestionJobTransitionError",
    "PriceHistoryError",
    "PriceSourceError",
    "StoreUnavailableError",
    "WriteConflictError",
]
