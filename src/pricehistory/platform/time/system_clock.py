from __future__ import annotations

from datetime import datetime, timezone

from pricehistory.contexts.price_history.application.ports.clock import Clock


class SystemClock(Clock):
    """
    Platform Clock implementation backed by the system wall clock.

    Returns timezone-aware `datetime.now(timezone.utc)`.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
