from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from pricehistory.shared_kernel.primitives import SeriesKey


@dataclass(frozen=True, slots=True)
class SeriesPoint:
    """
    One stored daily price row of a series.

    Rows are created only by the commit engine, removed only by a refresh commit
    for the same key and never updated in place.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/series_store.py
      - alembic/versions/20260301_0001_price_history_v1.py
    """

    key: SeriesKey
    day: date
    price: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.day, datetime) or not isinstance(self.day, date):
            raise ValueError("SeriesPoint.day must be a date (not datetime)")
        if not isinstance(self.price, Decimal):
            object.__setattr__(self, "price", Decimal(str(self.price)))
