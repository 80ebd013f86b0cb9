from .enqueue_ingestion_job import EnqueueIngestionJobUseCase
from .errors import map_price_history_exception, validation_error
from .fan_out_stale_series import FanOutStaleSeriesUseCase
from .ingest_price_history import IngestionState, IngestPriceHistoryUseCase
from .process_ingestion_job import (
    IngestionJobRunReport,
    IngestionJobRunStatus,
    ProcessIngestionJobUseCase,
)

__all__ = [
    "EnqueueIngestionJobUseCase",
    "FanOutStaleSeriesUseCase",
    "IngestPriceHistoryUseCase",
    "IngestionJobRunReport",
    "IngestionJobRunStatus",
    "IngestionState",
    "ProcessIngestionJobUseCase",
    "map_price_history_exception",
    "validation_error",
]
