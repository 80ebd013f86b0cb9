from .ingestion_job_queue import InMemoryIngestionJobQueue
from .series_store import InMemorySeriesStore

__all__ = [
    "InMemoryIngestionJobQueue",
    "InMemorySeriesStore",
]
