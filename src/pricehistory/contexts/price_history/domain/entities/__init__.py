from .ingestion_job import (
    IngestionJob,
    IngestionJobState,
    QueuedIngestionJob,
    ensure_job_state_transition,
)
from .series_point import SeriesPoint

__all__ = [
    "IngestionJob",
    "IngestionJobState",
    "QueuedIngestionJob",
    "SeriesPoint",
    "ensure_job_state_transition",
]
