"""
Pydantic API models and converters for price-history ingestion job endpoints.

Docs:
  - docs/architecture/price-history/price-history-ingestion-v1.md
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from pricehistory.contexts.price_history.domain.entities import IngestionJob
from pricehistory.contexts.price_history.domain.errors import IngestionJobPayloadError
from pricehistory.shared_kernel.primitives import SERIES_KEY_MAX_LENGTH, SeriesKey


class IngestionJobPayload(BaseModel):
    """
    Wire contract of one ingestion job: `{"key", "forceRefresh", "requestedStart"}`.

    The same model validates admin API request bodies and persisted queue payloads.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/api/routes/ingestion_jobs.py
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
      - src/pricehistory/contexts/price_history/domain/entities/ingestion_job.py
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    key: StrictStr = Field(min_length=1, max_length=SERIES_KEY_MAX_LENGTH)
    force_refresh: StrictBool = Field(default=False, alias="forceRefresh")
    requested_start: date = Field(alias="requestedStart")

    def to_domain(self) -> IngestionJob:
        """
        Convert validated payload into domain `IngestionJob`.

        Args:
            None.
        Returns:
            IngestionJob: Domain job with normalized series key.
        Assumptions:
            Field-level constraints were enforced by pydantic.
        Raises:
            ValueError: If key normalization fails (for example whitespace-only key).
        Side Effects:
            None.
        """
        return IngestionJob(
            key=SeriesKey(self.key),
            force_refresh=self.force_refresh,
            requested_start=self.requested_start,
        )


class IngestionJobEnqueuedResponse(BaseModel):
    """
    API response for `POST /admin/price-history/jobs`.

    Related:
      - apps/api/routes/ingestion_jobs.py
    """

    job_id: UUID


def decode_ingestion_job_payload(*, payload: Mapping[str, Any]) -> IngestionJob:
    """
    Validate a raw payload mapping and convert it into `IngestionJob`.

    Parameters:
    - payload: raw JSON object (queue `payload_json` or CLI input).

    Returns:
    - Decoded domain job.

    Assumptions/Invariants:
    - Unknown fields, non-bool `forceRefresh` and non-ISO `requestedStart` are rejected.

    Errors/Exceptions:
    - `IngestionJobPayloadError` with deterministic `details.errors` list.

    Side effects:
    - None.
    """
    if not isinstance(payload, Mapping):
        raise IngestionJobPayloadError(
            f"ingestion job payload must be an object, got {type(payload).__name__}"
        )
    try:
        return IngestionJobPayload.model_validate(dict(payload)).to_domain()
    except ValidationError as error:
        raise IngestionJobPayloadError(
            "ingestion job payload is invalid",
            details={"errors": _validation_error_items(error=error)},
        ) from error
    except ValueError as error:
        raise IngestionJobPayloadError(
            str(error),
            details={"errors": [{"path": "key", "code": "value_error", "message": str(error)}]},
        ) from error


def _validation_error_items(*, error: ValidationError) -> list[dict[str, str]]:
    items = [
        {
            "path": ".".join(str(part) for part in raw["loc"]) or "unknown",
            "code": "required" if raw["type"] == "missing" else str(raw["type"]),
            "message": str(raw["msg"]),
        }
        for raw in error.errors()
    ]
    return sorted(items, key=lambda item: (item["path"], item["code"], item["message"]))


__all__ = [
    "IngestionJobEnqueuedResponse",
    "IngestionJobPayload",
    "decode_ingestion_job_payload",
]
