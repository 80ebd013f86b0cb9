from __future__ import annotations

from datetime import date

from pricehistory.contexts.price_history.application.ports import SeriesLatestDay
from pricehistory.contexts.price_history.application.services import PriceHistoryFanOutPlanner
from pricehistory.shared_kernel.primitives import SeriesKey

_TODAY = date(2023, 6, 25)


def test_planner_emits_one_append_task_per_stale_key() -> None:
    """
    Verify stale keys get `requested_start = latest_day + 1` and up-to-date keys are skipped.

    Parameters:
    - None.

    Returns:
    - None.

    Assumptions/Invariants:
    - A key whose latest day equals today is current.

    Errors/Exceptions:
    - AssertionError on planning mismatch.

    Side effects:
    - None.
    """
    planner = PriceHistoryFanOutPlanner(initial_start_day=date(2023, 1, 1))

    tasks = planner.plan(
        latest_days=(
            SeriesLatestDay(key=SeriesKey("0xbb"), latest_day=date(2023, 6, 21)),
            SeriesLatestDay(key=SeriesKey("0xaa"), latest_day=date(2023, 6, 24)),
            SeriesLatestDay(key=SeriesKey("0xcc"), latest_day=_TODAY),
        ),
        tracked_keys=(),
        today=_TODAY,
    )

    assert [(task.key.value, task.requested_start, task.reason) for task in tasks] == [
        ("0xaa", date(2023, 6, 25), "stale_series"),
        ("0xbb", date(2023, 6, 22), "stale_series"),
    ]


def test_planner_adds_tracked_keys_without_rows_from_initial_start_day() -> None:
    planner = PriceHistoryFanOutPlanner(initial_start_day=date(2023, 1, 1))

    tasks = planner.plan(
        latest_days=(SeriesLatestDay(key=SeriesKey("0xaa"), latest_day=_TODAY),),
        tracked_keys=(SeriesKey("0xaa"), SeriesKey("0xdd")),
        today=_TODAY,
    )

    assert len(tasks) == 1
    assert tasks[0].key == SeriesKey("0xdd")
    assert tasks[0].requested_start == date(2023, 1, 1)
    assert tasks[0].reason == "new_series"


def test_planner_skips_tracked_keys_when_initial_start_day_is_in_future() -> None:
    planner = PriceHistoryFanOutPlanner(initial_start_day=date(2023, 7, 1))

    tasks = planner.plan(latest_days=(), tracked_keys=(SeriesKey("0xdd"),), today=_TODAY)

    assert tasks == ()
