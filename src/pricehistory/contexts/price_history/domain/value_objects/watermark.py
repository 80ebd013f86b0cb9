from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from pricehistory.shared_kernel.primitives import next_series_day


@dataclass(frozen=True, slots=True)
class Watermark:
    """
    Latest stored day of one series, or absent when the series has no rows.

    Derived from storage on every read and never cached across commit attempts.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/services/watermark_resolver.py
      - src/pricehistory/contexts/price_history/domain/services/batch_validator.py
    """

    day: date | None = None

    def __post_init__(self) -> None:
        if self.day is None:
            return
        if isinstance(self.day, datetime) or not isinstance(self.day, date):
            raise ValueError("Watermark.day must be a date (not datetime) or None")

    @classmethod
    def absent(cls) -> Watermark:
        return cls(day=None)

    @classmethod
    def at(cls, day: date) -> Watermark:
        return cls(day=day)

    @property
    def is_absent(self) -> bool:
        return self.day is None

    def next_day(self) -> date:
        """
        Return the only day a batch may start at to extend this series.

        Args:
            None.
        Returns:
            date: Day right after the watermark.
        Assumptions:
            Caller checked `is_absent` first.
        Raises:
            ValueError: If the watermark is absent.
        Side Effects:
            None.
        """
        if self.day is None:
            raise ValueError("absent watermark has no next day")
        return next_series_day(self.day)

    def __str__(self) -> str:
        return "absent" if self.day is None else self.day.isoformat()
