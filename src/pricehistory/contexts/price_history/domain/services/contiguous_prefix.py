from __future__ import annotations

from datetime import date

from pricehistory.contexts.price_history.domain.value_objects import FetchedBatch, PriceQuote
from pricehistory.shared_kernel.primitives import next_series_day


def contiguous_prefix(*, batch: FetchedBatch, start_day: date) -> tuple[PriceQuote, ...]:
    """
    Select the run of consecutive-day quotes that begins exactly at `start_day`.

    Quotes before `start_day` are dropped. The run ends at the first missing day.

    Args:
        batch: Strictly ascending fetched batch.
        start_day: Day the run must begin at.
    Returns:
        tuple[PriceQuote, ...]: Insertable quotes; empty when the batch never reaches
        `start_day` or skips over it.
    Assumptions:
        Batch ordering is enforced by `FetchedBatch`.
    Raises:
        None.
    Side Effects:
        None.
    """
    selected: list[PriceQuote] = []
    expected_day = start_day
    for quote in batch.quotes:
        if quote.day < expected_day and not selected:
            continue
        if quote.day != expected_day:
            break
        selected.append(quote)
        expected_day = next_series_day(expected_day)
    return tuple(selected)
