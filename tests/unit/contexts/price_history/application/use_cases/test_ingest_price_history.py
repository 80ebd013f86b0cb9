from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from pricehistory.contexts.price_history.adapters.outbound.persistence.in_memory import (
    InMemorySeriesStore,
)
from pricehistory.contexts.price_history.application.services import (
    IdempotentCommitEngine,
    WatermarkResolver,
)
from pricehistory.contexts.price_history.application.use_cases import IngestPriceHistoryUseCase
from pricehistory.contexts.price_history.domain.entities import IngestionJob
from pricehistory.contexts.price_history.domain.errors import PriceSourceError
from pricehistory.contexts.price_history.domain.value_objects import FetchedBatch, PriceQuote
from pricehistory.shared_kernel.primitives import SeriesKey

_KEY = SeriesKey("0x1f9840a85d5af5bf1d1762f925bdaddc4201f984")


class _FakePriceSource:
    """
    Deterministic price source returning one prepared batch per call.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/price_source.py
    """

    def __init__(self, *, batch: FetchedBatch | None = None, error: Exception | None = None):
        self._batch = batch if batch is not None else FetchedBatch.of([])
        self._error = error
        self.calls: list[tuple[SeriesKey, date]] = []

    def fetch_daily(self, *, key: SeriesKey, start_day: date) -> FetchedBatch:
        self.calls.append((key, start_day))
        if self._error is not None:
            raise self._error
        return self._batch


class _NoopSleeper:
    def sleep(self, *, seconds: float) -> None:
        _ = seconds


def _day_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def _batch(start: date, end: date, *, price: str = "6.1") -> FetchedBatch:
    return FetchedBatch.of(
        PriceQuote(day=day, price=Decimal(price)) for day in _day_range(start, end)
    )


def _store_with(start: date, end: date) -> InMemorySeriesStore:
    store = InMemorySeriesStore()
    with store.unit_of_work() as transaction:
        transaction.insert_missing(key=_KEY, quotes=tuple(_batch(start, end, price="5")))
    return store


def _use_case(
    *,
    store: InMemorySeriesStore,
    source: _FakePriceSource,
) -> IngestPriceHistoryUseCase:
    return IngestPriceHistoryUseCase(
        price_source=source,
        watermark_resolver=WatermarkResolver(store=store),
        commit_engine=IdempotentCommitEngine(store=store, sleeper=_NoopSleeper()),
    )


def _job(*, start: date, force_refresh: bool = False) -> IngestionJob:
    return IngestionJob(key=_KEY, force_refresh=force_refresh, requested_start=start)


def test_handler_appends_batch_and_duplicate_job_inserts_nothing() -> None:
    """
    Verify the append flow and idempotent replay of the same job.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Series ends at 2023-06-21; source returns 2023-06-22..24.
    Raises:
        AssertionError: If outcomes or stored days differ.
    Side Effects:
        None.
    """
    store = _store_with(date(2023, 6, 1), date(2023, 6, 21))
    source = _FakePriceSource(batch=_batch(date(2023, 6, 22), date(2023, 6, 24)))
    use_case = _use_case(store=store, source=source)
    job = _job(start=date(2023, 6, 22))

    first = use_case.handle(job=job)
    second = use_case.handle(job=job)

    assert (first.status, first.inserted, first.deleted) == ("written", 3, 0)
    assert (second.status, second.inserted, second.deleted) == ("written", 0, 0)
    assert source.calls == [(_KEY, date(2023, 6, 22)), (_KEY, date(2023, 6, 22))]
    assert store.max_day(key=_KEY) == date(2023, 6, 24)
    assert len(store.list_points(key=_KEY)) == 24


def test_handler_rejects_gap_without_writing() -> None:
    store = _store_with(date(2023, 6, 1), date(2023, 6, 21))
    source = _FakePriceSource(batch=_batch(date(2023, 6, 23), date(2023, 6, 24)))

    outcome = _use_case(store=store, source=source).handle(job=_job(start=date(2023, 6, 23)))

    assert outcome.status == "rejected"
    assert outcome.reason == "gap_or_overlap"
    assert store.max_day(key=_KEY) == date(2023, 6, 21)


def test_handler_rejects_overlap_without_writing() -> None:
    store = _store_with(date(2023, 6, 1), date(2023, 6, 21))
    source = _FakePriceSource(batch=_batch(date(2023, 6, 20), date(2023, 6, 24)))

    outcome = _use_case(store=store, source=source).handle(job=_job(start=date(2023, 6, 20)))

    assert outcome.status == "rejected"
    assert outcome.reason == "gap_or_overlap"
    assert store.max_day(key=_KEY) == date(2023, 6, 21)


def test_handler_starts_new_series_at_first_fetched_day() -> None:
    store = InMemorySeriesStore()
    source = _FakePriceSource(batch=_batch(date(2023, 1, 5), date(2023, 1, 7)))

    outcome = _use_case(store=store, source=source).handle(job=_job(start=date(2023, 1, 1)))

    assert outcome.status == "written"
    assert outcome.inserted == 3
    assert [point.day for point in store.list_points(key=_KEY)] == list(
        _day_range(date(2023, 1, 5), date(2023, 1, 7))
    )


def test_handler_rejects_empty_batch() -> None:
    store = _store_with(date(2023, 6, 1), date(2023, 6, 21))

    outcome = _use_case(store=store, source=_FakePriceSource()).handle(
        job=_job(start=date(2023, 6, 22))
    )

    assert outcome.status == "rejected"
    assert outcome.reason == "empty_batch"
    assert outcome.to_mapping()["inserted"] == 0


def test_handler_propagates_fetch_failure_without_touching_store() -> None:
    store = _store_with(date(2023, 6, 1), date(2023, 6, 21))
    source = _FakePriceSource(
        error=PriceSourceError("timeout", key=_KEY, start_day=date(2023, 6, 22))
    )

    with pytest.raises(PriceSourceError):
        _use_case(store=store, source=source).handle(job=_job(start=date(2023, 6, 22)))

    assert store.max_day(key=_KEY) == date(2023, 6, 21)


def test_force_refresh_replaces_series_from_requested_start() -> None:
    """
    Verify a refresh job purges the key and rebuilds it from the fetched batch.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Refresh batch starts before the stored series and would be an overlap for append.
    Raises:
        AssertionError: If old rows survive or the batch is rejected.
    Side Effects:
        None.
    """
    store = _store_with(date(2023, 6, 1), date(2023, 6, 21))
    source = _FakePriceSource(batch=_batch(date(2023, 5, 30), date(2023, 6, 2), price="7"))

    outcome = _use_case(store=store, source=source).handle(
        job=_job(start=date(2023, 5, 30), force_refresh=True)
    )

    points = store.list_points(key=_KEY)
    assert outcome.status == "written"
    assert (outcome.inserted, outcome.deleted) == (4, 21)
    assert [point.day for point in points] == list(
        _day_range(date(2023, 5, 30), date(2023, 6, 2))
    )
    assert {point.price for point in points} == {Decimal("7")}


def test_use_case_requires_collaborators() -> None:
    store = InMemorySeriesStore()
    with pytest.raises(ValueError):
        IngestPriceHistoryUseCase(
            price_source=None,  # type: ignore[arg-type]
            watermark_resolver=WatermarkResolver(store=store),
            commit_engine=IdempotentCommitEngine(store=store, sleeper=_NoopSleeper()),
        )
