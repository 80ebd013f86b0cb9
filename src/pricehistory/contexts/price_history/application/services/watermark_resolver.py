from __future__ import annotations

from pricehistory.contexts.price_history.application.ports import (
    SeriesMaxDayReader,
    SeriesStore,
)
from pricehistory.contexts.price_history.domain.value_objects import Watermark
from pricehistory.shared_kernel.primitives import SeriesKey


def resolve_watermark(*, reader: SeriesMaxDayReader, key: SeriesKey) -> Watermark:
    """
    Resolve the current series end through any max-day reader.

    Args:
        reader: Store or open store transaction.
        key: Series key.
    Returns:
        Watermark: Latest stored day or absent.
    Assumptions:
        When `reader` is a transaction the result is authoritative for that transaction.
    Raises:
        StoreUnavailableError: On storage failures.
        WriteConflictError: When read inside a conflicting transaction.
    Side Effects:
        One storage read.
    """
    max_day = reader.max_day(key=key)
    if max_day is None:
        return Watermark.absent()
    return Watermark.at(max_day)


class WatermarkResolver:
    """
    One-shot read of the current end of a series.

    The value is advisory outside a commit transaction; the commit engine re-resolves it.
    """

    def __init__(self, *, store: SeriesStore) -> None:
        if store is None:  # type: ignore[truthy-bool]
            raise ValueError("WatermarkResolver requires store")
        self._store = store

    def resolve(self, *, key: SeriesKey) -> Watermark:
        return resolve_watermark(reader=self._store, key=key)
