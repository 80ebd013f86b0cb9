from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import ContextManager, Protocol, Sequence

from pricehistory.contexts.price_history.domain.entities import SeriesPoint
from pricehistory.contexts.price_history.domain.value_objects import PriceQuote
from pricehistory.shared_kernel.primitives import SeriesKey


@dataclass(frozen=True, slots=True)
class SeriesLatestDay:
    """Latest stored day of one series, as listed for fan-out planning."""

    key: SeriesKey
    latest_day: date


class SeriesMaxDayReader(Protocol):
    """
    Minimal read surface needed to resolve a watermark.

    Implemented both by the store (one-shot read) and by an open store transaction
    (authoritative read inside the commit).
    """

    def max_day(self, *, key: SeriesKey) -> date | None:
        ...


class SeriesStoreTransaction(SeriesMaxDayReader, Protocol):
    """
    One open atomic unit of work over the series table.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        series_store.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/in_memory/
        series_store.py
    """

    def delete_series(self, *, key: SeriesKey) -> int:
        """
        Delete every stored row for `key`.

        Args:
            key: Series key.
        Returns:
            int: Number of deleted rows.
        Assumptions:
            Deletion becomes visible to others only when the unit of work commits.
        Raises:
            WriteConflictError: On transaction-level conflicts.
            StoreUnavailableError: On other storage failures.
        Side Effects:
            Deletes rows inside the open transaction.
        """
        ...

    def insert_missing(self, *, key: SeriesKey, quotes: Sequence[PriceQuote]) -> int:
        """
        Insert quotes with skip-existing semantics on `(key, day)`.

        Args:
            key: Series key.
            quotes: Quotes to insert.
        Returns:
            int: Number of rows actually inserted.
        Assumptions:
            Rows already stored for the same day are left untouched.
        Raises:
            WriteConflictError: On transaction-level conflicts.
            StoreUnavailableError: On other storage failures.
        Side Effects:
            Inserts rows inside the open transaction.
        """
        ...


class SeriesStore(SeriesMaxDayReader, Protocol):
    """
    Transactional daily price series storage keyed by `(series_key, day)`.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        series_store.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/in_memory/
        series_store.py
      - alembic/versions/20260301_0001_price_history_v1.py
    """

    def unit_of_work(self) -> ContextManager[SeriesStoreTransaction]:
        """
        Open one atomic transaction; commit on normal exit, roll back on exception.

        Args:
            None.
        Returns:
            ContextManager[SeriesStoreTransaction]: Transaction handle.
        Assumptions:
            Postgres implementation runs at SERIALIZABLE isolation.
        Raises:
            WriteConflictError: When commit fails on a serialization conflict.
            StoreUnavailableError: When the store cannot be reached.
        Side Effects:
            Opens a storage transaction.
        """
        ...

    def list_points(
        self,
        *,
        key: SeriesKey,
        start_day: date | None = None,
        end_day: date | None = None,
    ) -> tuple[SeriesPoint, ...]:
        """
        Read stored points for `key` in inclusive day range, ordered by day.

        Args:
            key: Series key.
            start_day: Optional inclusive lower bound.
            end_day: Optional inclusive upper bound.
        Returns:
            tuple[SeriesPoint, ...]: Points in ascending day order.
        Assumptions:
            None.
        Raises:
            StoreUnavailableError: On storage failures.
        Side Effects:
            None.
        """
        ...


class SeriesLatestDayReader(Protocol):
    """
    Lists the latest stored day of every series key, used by the fan-out producer.

    Related:
      - src/pricehistory/contexts/price_history/application/use_cases/fan_out_stale_series.py
    """

    def list_latest_days(self) -> tuple[SeriesLatestDay, ...]:
        ...
