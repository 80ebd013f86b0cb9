from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from pricehistory.contexts.price_history.application.dto import FanOutTask
from pricehistory.contexts.price_history.application.ports import SeriesLatestDay
from pricehistory.shared_kernel.primitives import SeriesKey, next_series_day


@dataclass(frozen=True, slots=True)
class PriceHistoryFanOutPlanner:
    """
    Plan append jobs for every series whose latest stored day is before today.

    Parameters:
    - initial_start_day: start day for tracked keys that have no stored rows yet.

    Assumptions/Invariants:
    - `today` is the current UTC day; a key is stale when its latest day is before it.
    - Output is ordered by series key for deterministic enqueue order.
    """

    initial_start_day: date

    def plan(
        self,
        *,
        latest_days: Iterable[SeriesLatestDay],
        tracked_keys: Iterable[SeriesKey],
        today: date,
    ) -> tuple[FanOutTask, ...]:
        """
        Build one task per stale stored key plus one per tracked key without rows.

        Parameters:
        - latest_days: latest stored day per key.
        - tracked_keys: configured keys that must exist even before first ingestion.
        - today: current UTC day.

        Returns:
        - Tasks sorted by key.

        Errors/Exceptions:
        - None.

        Side effects:
        - None.
        """
        latest_by_key: dict[SeriesKey, date] = {}
        for item in latest_days:
            previous = latest_by_key.get(item.key)
            if previous is None or item.latest_day > previous:
                latest_by_key[item.key] = item.latest_day

        tasks: dict[SeriesKey, FanOutTask] = {}
        for key, latest_day in latest_by_key.items():
            if latest_day < today:
                tasks[key] = FanOutTask(
                    key=key,
                    requested_start=next_series_day(latest_day),
                    reason="stale_series",
                )

        if self.initial_start_day <= today:
            for key in tracked_keys:
                if key in latest_by_key or key in tasks:
                    continue
                tasks[key] = FanOutTask(
                    key=key,
                    requested_start=self.initial_start_day,
                    reason="new_series",
                )

        return tuple(tasks[key] for key in sorted(tasks, key=lambda item: item.value))
