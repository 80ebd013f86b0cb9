from __future__ import annotations

from datetime import date
from typing import Protocol

from pricehistory.contexts.price_history.domain.value_objects import FetchedBatch
from pricehistory.shared_kernel.primitives import SeriesKey


class PriceSource(Protocol):
    """
    Port to the external daily price quote service.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/clients/rest_price_source.py
      - src/pricehistory/contexts/price_history/application/use_cases/ingest_price_history.py
    """

    def fetch_daily(self, *, key: SeriesKey, start_day: date) -> FetchedBatch:
        """
        Fetch daily quotes for `key` at or after `start_day`.

        Args:
            key: Series key.
            start_day: Earliest requested UTC day.
        Returns:
            FetchedBatch: Strictly ascending quotes, possibly empty. The first quote may
            start later than `start_day`.
        Assumptions:
            One call per job; retries are the queue's concern.
        Raises:
            PriceSourceError: When the upstream call fails or returns an unusable body.
        Side Effects:
            One outbound network call.
        """
        ...
