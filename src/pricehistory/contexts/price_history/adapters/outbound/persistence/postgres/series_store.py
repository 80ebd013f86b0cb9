from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Iterator, Mapping, Sequence

from pricehistory.contexts.price_history.adapters.outbound.persistence.postgres.errors import (
    is_driver_error,
    translate_storage_error,
)
from pricehistory.contexts.price_history.adapters.outbound.persistence.postgres.gateway import (
    PriceHistoryPostgresGateway,
    PriceHistorySqlSession,
)
from pricehistory.contexts.price_history.application.ports import (
    SeriesLatestDay,
    SeriesLatestDayReader,
    SeriesStore,
    SeriesStoreTransaction,
)
from pricehistory.contexts.price_history.domain.entities import SeriesPoint
from pricehistory.contexts.price_history.domain.errors import StoreUnavailableError
from pricehistory.contexts.price_history.domain.value_objects import PriceQuote
from pricehistory.shared_kernel.primitives import SeriesKey

DEFAULT_SERIES_TABLE = "price_history_daily_prices"


class _PostgresSeriesStoreTransaction(SeriesStoreTransaction):
    """Explicit SQL statements bound to one open series transaction."""

    def __init__(self, *, session: PriceHistorySqlSession, table: str) -> None:
        self._session = session
        self._table = table

    def max_day(self, *, key: SeriesKey) -> date | None:
        return _select_max_day(session=self._session, table=self._table, key=key)

    def delete_series(self, *, key: SeriesKey) -> int:
        query = f"""
        WITH deleted AS (
            DELETE FROM {self._table}
            WHERE series_key = %(series_key)s
            RETURNING 1
        )
        SELECT count(*) AS deleted_count
        FROM deleted
        """
        try:
            row = self._session.fetch_one(query=query, parameters={"series_key": key.value})
        except Exception as error:  # noqa: BLE001
            if not is_driver_error(error=error):
                raise
            raise translate_storage_error(
                error=error,
                operation="PostgresSeriesStore.delete_series",
            ) from error
        if row is None:
            return 0
        return int(row["deleted_count"])

    def insert_missing(self, *, key: SeriesKey, quotes: Sequence[PriceQuote]) -> int:
        if not quotes:
            return 0
        query = f"""
        INSERT INTO {self._table} (series_key, day, price)
        SELECT
            %(series_key)s,
            batch.day,
            batch.price
        FROM unnest(%(days)s::date[], %(prices)s::numeric[]) AS batch(day, price)
        ORDER BY batch.day ASC
        ON CONFLICT (series_key, day) DO NOTHING
        RETURNING day
        """
        try:
            rows = self._session.fetch_all(
                query=query,
                parameters={
                    "series_key": key.value,
                    "days": [quote.day for quote in quotes],
                    "prices": [quote.price for quote in quotes],
                },
            )
        except Exception as error:  # noqa: BLE001
            if not is_driver_error(error=error):
                raise
            raise translate_storage_error(
                error=error,
                operation="PostgresSeriesStore.insert_missing",
            ) from error
        return len(rows)


class PostgresSeriesStore(SeriesStore, SeriesLatestDayReader):
    """
    Explicit SQL adapter for the daily price series table.

    Commits run at SERIALIZABLE isolation. Driver errors are classified into
    `WriteConflictError` (retryable by the commit engine) and `StoreUnavailableError`.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/series_store.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        gateway.py
      - alembic/versions/20260301_0001_price_history_v1.py
    """

    def __init__(
        self,
        *,
        gateway: PriceHistoryPostgresGateway,
        series_table: str = DEFAULT_SERIES_TABLE,
    ) -> None:
        """
        Initialize store with SQL gateway and target table name.

        Args:
            gateway: SQL gateway abstraction.
            series_table: Daily prices table name.
        Returns:
            None.
        Assumptions:
            Table has `UNIQUE (series_key, day)`.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresSeriesStore requires gateway")
        normalized_table = series_table.strip()
        if not normalized_table:
            raise ValueError("PostgresSeriesStore requires non-empty series_table")
        self._gateway = gateway
        self._table = normalized_table

    @contextmanager
    def unit_of_work(self) -> Iterator[SeriesStoreTransaction]:
        """
        Open one SERIALIZABLE transaction and expose series statements bound to it.

        Args:
            None.
        Returns:
            Iterator[SeriesStoreTransaction]: Transaction handle.
        Assumptions:
            Statement-level errors are already translated by the transaction handle.
        Raises:
            WriteConflictError: When begin/commit fails with a conflict SQLSTATE.
            StoreUnavailableError: When begin/commit fails for another driver reason.
        Side Effects:
            Opens a database transaction.
        """
        try:
            with self._gateway.transaction(serializable=True) as session:
                yield _PostgresSeriesStoreTransaction(session=session, table=self._table)
        except Exception as error:  # noqa: BLE001
            if not is_driver_error(error=error):
                raise
            raise translate_storage_error(
                error=error,
                operation="PostgresSeriesStore.unit_of_work",
            ) from error

    def max_day(self, *, key: SeriesKey) -> date | None:
        return _select_max_day(session=self._gateway, table=self._table, key=key)

    def list_points(
        self,
        *,
        key: SeriesKey,
        start_day: date | None = None,
        end_day: date | None = None,
    ) -> tuple[SeriesPoint, ...]:
        """
        Read stored points in inclusive range ordered by day.

        Args:
            key: Series key.
            start_day: Optional inclusive lower bound.
            end_day: Optional inclusive upper bound.
        Returns:
            tuple[SeriesPoint, ...]: Ordered points.
        Assumptions:
            `NULL` bounds disable the corresponding predicate.
        Raises:
            StoreUnavailableError: On storage failure or malformed rows.
        Side Effects:
            Executes one SQL select.
        """
        query = f"""
        SELECT
            series_key,
            day,
            price
        FROM {self._table}
        WHERE series_key = %(series_key)s
          AND (%(start_day)s::date IS NULL OR day >= %(start_day)s::date)
          AND (%(end_day)s::date IS NULL OR day <= %(end_day)s::date)
        ORDER BY day ASC
        """
        rows = self._fetch_all(
            query=query,
            parameters={"series_key": key.value, "start_day": start_day, "end_day": end_day},
            operation="PostgresSeriesStore.list_points",
        )
        return tuple(_map_point_row(row=row) for row in rows)

    def list_latest_days(self) -> tuple[SeriesLatestDay, ...]:
        query = f"""
        SELECT
            series_key,
            max(day) AS latest_day
        FROM {self._table}
        GROUP BY series_key
        ORDER BY series_key ASC
        """
        rows = self._fetch_all(
            query=query,
            parameters={},
            operation="PostgresSeriesStore.list_latest_days",
        )
        try:
            return tuple(
                SeriesLatestDay(key=SeriesKey(str(row["series_key"])), latest_day=row["latest_day"])
                for row in rows
            )
        except (KeyError, ValueError) as error:
            raise StoreUnavailableError(
                "PostgresSeriesStore.list_latest_days cannot map row"
            ) from error

    def _fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
        operation: str,
    ) -> tuple[Mapping[str, Any], ...]:
        try:
            return self._gateway.fetch_all(query=query, parameters=parameters)
        except Exception as error:  # noqa: BLE001
            if not is_driver_error(error=error):
                raise
            raise translate_storage_error(error=error, operation=operation) from error


def _select_max_day(
    *,
    session: PriceHistorySqlSession,
    table: str,
    key: SeriesKey,
) -> date | None:
    """
    Read `max(day)` for one key through a one-shot gateway or an open transaction.

    Args:
        session: Gateway or transaction session.
        table: Daily prices table name.
        key: Series key.
    Returns:
        date | None: Latest stored day or `None` for a series without rows.
    Assumptions:
        Aggregate query always returns exactly one row.
    Raises:
        WriteConflictError: On conflict SQLSTATE inside a serializable transaction.
        StoreUnavailableError: On other storage failures.
    Side Effects:
        Executes one SQL select.
    """
    query = f"""
    SELECT max(day) AS max_day
    FROM {table}
    WHERE series_key = %(series_key)s
    """
    try:
        row = session.fetch_one(query=query, parameters={"series_key": key.value})
    except Exception as error:  # noqa: BLE001
        if not is_driver_error(error=error):
            raise
        raise translate_storage_error(
            error=error,
            operation="PostgresSeriesStore.max_day",
        ) from error
    if row is None:
        return None
    max_day = row.get("max_day")
    if max_day is None:
        return None
    if not isinstance(max_day, date):
        raise StoreUnavailableError(f"max_day must be a date, got {type(max_day).__name__}")
    return max_day


def _map_point_row(*, row: Mapping[str, Any]) -> SeriesPoint:
    try:
        return SeriesPoint(
            key=SeriesKey(str(row["series_key"])),
            day=row["day"],
            price=row["price"] if isinstance(row["price"], Decimal) else Decimal(str(row["price"])),
        )
    except (KeyError, ValueError, ArithmeticError) as error:
        raise StoreUnavailableError("PostgresSeriesStore cannot map point row") from error


__all__ = ["DEFAULT_SERIES_TABLE", "PostgresSeriesStore"]
