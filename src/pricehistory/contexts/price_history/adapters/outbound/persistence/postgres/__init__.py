from .gateway import (
    PriceHistoryPostgresGateway,
    PriceHistorySqlSession,
    PsycopgPriceHistoryPostgresGateway,
)
from .ingestion_job_queue import DEFAULT_JOBS_TABLE, PostgresIngestionJobQueue
from .series_store import DEFAULT_SERIES_TABLE, PostgresSeriesStore

__all__ = [
    "DEFAULT_JOBS_TABLE",
    "DEFAULT_SERIES_TABLE",
    "PostgresIngestionJobQueue",
    "PostgresSeriesStore",
    "PriceHistoryPostgresGateway",
    "PriceHistorySqlSession",
    "PsycopgPriceHistoryPostgresGateway",
]
