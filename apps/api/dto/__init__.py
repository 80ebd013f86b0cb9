from .ingestion_jobs import (
    IngestionJobEnqueuedResponse,
    IngestionJobPayload,
    decode_ingestion_job_payload,
)

__all__ = [
    "IngestionJobEnqueuedResponse",
    "IngestionJobPayload",
    "decode_ingestion_job_payload",
]
