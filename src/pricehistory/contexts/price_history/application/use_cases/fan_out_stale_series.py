from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from pricehistory.contexts.price_history.application.dto import FanOutReport
from pricehistory.contexts.price_history.application.ports import (
    Clock,
    IngestionJobQueue,
    SeriesLatestDayReader,
)
from pricehistory.contexts.price_history.application.services import PriceHistoryFanOutPlanner
from pricehistory.contexts.price_history.domain.entities import IngestionJob
from pricehistory.shared_kernel.primitives import SeriesKey, to_series_day

log = logging.getLogger(__name__)


class FanOutStaleSeriesUseCase:
    """
    Periodic producer of append jobs for stale series.

    Fan-out never sets `forceRefresh`. Overlapping cycles may enqueue the same key twice;
    the ingestion handler absorbs the duplicates.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/services/fanout_planner.py
      - apps/scheduler/price_history_fanout/wiring/modules/price_history_fanout.py
    """

    def __init__(
        self,
        *,
        latest_day_reader: SeriesLatestDayReader,
        queue: IngestionJobQueue,
        planner: PriceHistoryFanOutPlanner,
        clock: Clock,
        tracked_keys: Sequence[SeriesKey] = (),
    ) -> None:
        if latest_day_reader is None:  # type: ignore[truthy-bool]
            raise ValueError("FanOutStaleSeriesUseCase requires latest_day_reader")
        if queue is None:  # type: ignore[truthy-bool]
            raise ValueError("FanOutStaleSeriesUseCase requires queue")
        if planner is None:  # type: ignore[truthy-bool]
            raise ValueError("FanOutStaleSeriesUseCase requires planner")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("FanOutStaleSeriesUseCase requires clock")
        self._latest_day_reader = latest_day_reader
        self._queue = queue
        self._planner = planner
        self._clock = clock
        self._tracked_keys = tuple(tracked_keys)

    def run(self) -> FanOutReport:
        """
        Plan and enqueue one fan-out cycle.

        Args:
            None.
        Returns:
            FanOutReport: Planned tasks and enqueued job ids.
        Assumptions:
            "today" is the current UTC day from the injected clock.
        Raises:
            StoreUnavailableError: If reading latest days or enqueueing fails.
        Side Effects:
            Inserts queue rows.
        """
        now = self._clock.now()
        today = to_series_day(now)
        latest_days = self._latest_day_reader.list_latest_days()
        tasks = self._planner.plan(
            latest_days=latest_days,
            tracked_keys=self._tracked_keys,
            today=today,
        )

        job_ids: list[UUID] = []
        for task in tasks:
            job = IngestionJob(
                key=task.key,
                force_refresh=False,
                requested_start=task.requested_start,
            )
            job_ids.append(self._queue.enqueue(job=job, now=now))

        scanned = {item.key for item in latest_days} | set(self._tracked_keys)
        log.info(
            "event=fanout_completed today=%s scanned_keys=%s enqueued=%s",
            today.isoformat(),
            len(scanned),
            len(job_ids),
        )
        return FanOutReport(
            scanned_keys=len(scanned),
            planned_tasks=tasks,
            enqueued_job_ids=tuple(job_ids),
        )
