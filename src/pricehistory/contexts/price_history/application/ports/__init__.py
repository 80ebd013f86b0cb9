from .clock import Clock
from .ingestion_job_payload_decoder import IngestionJobPayloadDecoder
from .ingestion_job_queue import IngestionJobQueue
from .price_source import PriceSource
from .series_store import (
    SeriesLatestDay,
    SeriesLatestDayReader,
    SeriesMaxDayReader,
    SeriesStore,
    SeriesStoreTransaction,
)
from .sleeper import Sleeper

__all__ = [
    "Clock",
    "IngestionJobPayloadDecoder",
    "IngestionJobQueue",
    "PriceSource",
    "SeriesLatestDay",
    "SeriesLatestDayReader",
    "SeriesMaxDayReader",
    "SeriesStore",
    "SeriesStoreTransaction",
    "Sleeper",
]
