from __future__ import annotations

from typing import Any, Mapping, Protocol

from pricehistory.contexts.price_history.domain.entities import IngestionJob


class IngestionJobPayloadDecoder(Protocol):
    """
    Decode a raw queue payload into an `IngestionJob`.

    Related:
      - apps/worker/price_history_ingestion/wiring/modules/price_history_ingestion.py
      - apps/api/dto/ingestion_jobs.py
    """

    def decode(self, *, payload: Mapping[str, Any]) -> IngestionJob:
        """
        Decode payload `{"key", "forceRefresh", "requestedStart"}`.

        Args:
            payload: Raw JSON payload mapping.
        Returns:
            IngestionJob: Decoded job.
        Assumptions:
            Unknown fields are rejected.
        Raises:
            IngestionJobPayloadError: If payload violates the wire contract.
        Side Effects:
            None.
        """
        ...
