from __future__ import annotations

from datetime import date
from decimal import Decimal

from pricehistory.contexts.price_history.adapters.outbound.persistence.in_memory import (
    InMemorySeriesStore,
)
from pricehistory.contexts.price_history.application.services import WatermarkResolver
from pricehistory.contexts.price_history.domain.value_objects import PriceQuote, Watermark
from pricehistory.shared_kernel.primitives import SeriesKey


def test_resolver_returns_absent_for_unknown_key() -> None:
    resolver = WatermarkResolver(store=InMemorySeriesStore())

    assert resolver.resolve(key=SeriesKey("0xaa")) == Watermark.absent()


def test_resolver_returns_latest_stored_day() -> None:
    store = InMemorySeriesStore()
    with store.unit_of_work() as transaction:
        transaction.insert_missing(
            key=SeriesKey("0xaa"),
            quotes=(
                PriceQuote(day=date(2023, 6, 20), price=Decimal("1")),
                PriceQuote(day=date(2023, 6, 21), price=Decimal("2")),
            ),
        )

    watermark = WatermarkResolver(store=store).resolve(key=SeriesKey("0xAA"))

    assert watermark == Watermark.at(date(2023, 6, 21))
