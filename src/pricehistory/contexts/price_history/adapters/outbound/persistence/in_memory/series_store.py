from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Sequence

from pricehistory.contexts.price_history.application.ports import (
    SeriesLatestDay,
    SeriesLatestDayReader,
    SeriesStore,
    SeriesStoreTransaction,
)
from pricehistory.contexts.price_history.domain.entities import SeriesPoint
from pricehistory.contexts.price_history.domain.value_objects import PriceQuote
from pricehistory.shared_kernel.primitives import SeriesKey


class _InMemorySeriesStoreTransaction(SeriesStoreTransaction):
    """
    Staged view over committed rows; changes are applied only on successful exit.
    """

    def __init__(self, *, committed: dict[SeriesKey, dict[date, Decimal]]) -> None:
        self._committed = committed
        self._purged: set[SeriesKey] = set()
        self._staged: dict[SeriesKey, dict[date, Decimal]] = {}

    def _view(self, *, key: SeriesKey) -> dict[date, Decimal]:
        base = {} if key in self._purged else self._committed.get(key, {})
        return {**base, **self._staged.get(key, {})}

    def max_day(self, *, key: SeriesKey) -> date | None:
        rows = self._view(key=key)
        return max(rows) if rows else None

    def delete_series(self, *, key: SeriesKey) -> int:
        deleted = len(self._view(key=key))
        self._purged.add(key)
        self._staged.pop(key, None)
        return deleted

    def insert_missing(self, *, key: SeriesKey, quotes: Sequence[PriceQuote]) -> int:
        existing = self._view(key=key)
        staged = self._staged.setdefault(key, {})
        inserted = 0
        for quote in quotes:
            if quote.day in existing or quote.day in staged:
                continue
            staged[quote.day] = quote.price
            inserted += 1
        return inserted

    def apply(self) -> None:
        for key in self._purged:
            self._committed.pop(key, None)
        for key, rows in self._staged.items():
            if rows:
                self._committed.setdefault(key, {}).update(rows)


class InMemorySeriesStore(SeriesStore, SeriesLatestDayReader):
    """
    Process-local series storage with fully serialized transactions.

    One lock is held for the whole unit of work, so concurrent commits from several
    threads behave like SERIALIZABLE transactions that never conflict. Writes are staged
    and discarded when the block raises.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/series_store.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        series_store.py
      - tests/unit/contexts/price_history/application/services/test_commit_engine.py
    """

    def __init__(self) -> None:
        self._rows: dict[SeriesKey, dict[date, Decimal]] = {}
        self._lock = threading.RLock()

    @contextmanager
    def unit_of_work(self) -> Iterator[SeriesStoreTransaction]:
        with self._lock:
            transaction = _InMemorySeriesStoreTransaction(committed=self._rows)
            yield transaction
            transaction.apply()

    def max_day(self, *, key: SeriesKey) -> date | None:
        with self._lock:
            rows = self._rows.get(key)
            return max(rows) if rows else None

    def list_points(
        self,
        *,
        key: SeriesKey,
        start_day: date | None = None,
        end_day: date | None = None,
    ) -> tuple[SeriesPoint, ...]:
        with self._lock:
            rows = dict(self._rows.get(key, {}))
        return tuple(
            SeriesPoint(key=key, day=day, price=rows[day])
            for day in sorted(rows)
            if (start_day is None or day >= start_day) and (end_day is None or day <= end_day)
        )

    def list_latest_days(self) -> tuple[SeriesLatestDay, ...]:
        with self._lock:
            snapshot = {key: max(rows) for key, rows in self._rows.items() if rows}
        return tuple(
            SeriesLatestDay(key=key, latest_day=snapshot[key])
            for key in sorted(snapshot, key=lambda item: item.value)
        )
