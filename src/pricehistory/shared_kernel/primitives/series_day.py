from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

_ONE_DAY = timedelta(days=1)


def to_series_day(value: date | datetime | int | float) -> date:
    """
    Normalize a point in time to the UTC calendar day used as series row identity.

    Args:
        value: `date`, timezone-aware `datetime`, or unix epoch seconds.
    Returns:
        date: UTC calendar day with time-of-day discarded.
    Assumptions:
        Naive datetimes are ambiguous and therefore forbidden.
    Raises:
        ValueError: If value is a naive datetime, a bool, an unsupported type, or epoch
            seconds outside the platform timestamp range.
    Side Effects:
        None.
    """
    # datetime is a subclass of date, check it first.
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("series day requires a timezone-aware datetime (naive is forbidden)")
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        raise ValueError("series day cannot be built from bool")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).date()
        except (OverflowError, OSError) as error:
            raise ValueError(f"epoch seconds out of range: {value!r}") from error
    raise ValueError(f"unsupported series day value type: {type(value).__name__}")


def next_series_day(day: date) -> date:
    """Return the calendar day immediately after `day`."""
    return day + _ONE_DAY

