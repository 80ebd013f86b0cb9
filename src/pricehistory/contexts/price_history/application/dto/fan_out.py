from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal
from uuid import UUID

from pricehistory.shared_kernel.primitives import SeriesKey

FanOutReason = Literal["stale_series", "new_series"]


@dataclass(frozen=True, slots=True)
class FanOutTask:
    """One planned append job for a series that is behind today."""

    key: SeriesKey
    requested_start: date
    reason: FanOutReason


@dataclass(frozen=True, slots=True)
class FanOutReport:
    """
    Summary of one fan-out cycle.

    Parameters:
    - scanned_keys: distinct keys considered (stored plus tracked)
    - enqueued_job_ids: ids of jobs enqueued during the cycle, in planning order
    """

    scanned_keys: int
    planned_tasks: tuple[FanOutTask, ...] = ()
    enqueued_job_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def enqueued(self) -> int:
        return len(self.enqueued_job_ids)
