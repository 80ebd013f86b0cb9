from __future__ import annotations

from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, Mapping, Protocol, cast

import psycopg
from psycopg.rows import dict_row


class PriceHistorySqlSession(Protocol):
    """
    Statement surface shared by one-shot calls and open transactions.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        series_store.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        ingestion_job_queue.py
    """

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """
        Execute SQL statement and return one mapped row.

        Args:
            query: SQL text.
            parameters: SQL bind parameters mapping.
        Returns:
            Mapping[str, Any] | None: One row or `None`.
        Assumptions:
            Query may include `RETURNING` clause.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        """
        Execute SQL statement and return all mapped rows.

        Args:
            query: SQL text.
            parameters: SQL bind parameters mapping.
        Returns:
            tuple[Mapping[str, Any], ...]: Query rows in SQL-defined order.
        Assumptions:
            Deterministic ordering is controlled by explicit SQL `ORDER BY` clauses.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        """
        Execute side-effecting SQL statement without returning rows.

        Args:
            query: SQL text.
            parameters: SQL bind parameters mapping.
        Returns:
            None.
        Assumptions:
            Statement semantics are validated by adapter layer.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...


class PriceHistoryPostgresGateway(PriceHistorySqlSession, Protocol):
    """
    Minimal SQL gateway for price history Postgres adapters.

    One-shot methods run in their own implicit transaction; `transaction()` groups several
    statements into one atomic unit.
    """

    def transaction(self, *, serializable: bool = True) -> ContextManager[PriceHistorySqlSession]:
        """
        Open one database transaction; commit on clean exit, roll back on exception.

        Args:
            serializable: Run at `SERIALIZABLE` isolation when true.
        Returns:
            ContextManager[PriceHistorySqlSession]: Session bound to the open transaction.
        Assumptions:
            Serialization failures may surface on any statement or at commit.
        Raises:
            Exception: Driver/storage errors from implementation.
        Side Effects:
            Opens one connection for the transaction lifetime.
        """
        ...


class _PsycopgConnectionSession(PriceHistorySqlSession):
    """Session over one already open psycopg connection."""

    def __init__(self, *, connection: psycopg.Connection[Any]) -> None:
        self._connection = connection

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        with self._connection.cursor() as cursor:
            cursor.execute(cast(Any, query), parameters)
            row = cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        with self._connection.cursor() as cursor:
            cursor.execute(cast(Any, query), parameters)
            rows = cursor.fetchall()
        return tuple(dict(row) for row in rows)

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        with self._connection.cursor() as cursor:
            cursor.execute(cast(Any, query), parameters)


class PsycopgPriceHistoryPostgresGateway(PriceHistoryPostgresGateway):
    """
    Psycopg3 implementation for price history SQL adapters.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        series_store.py
      - alembic/versions/20260301_0001_price_history_v1.py
    """

    def __init__(self, *, dsn: str) -> None:
        """
        Initialize gateway with non-empty PostgreSQL DSN.

        Args:
            dsn: PostgreSQL DSN.
        Returns:
            None.
        Assumptions:
            DSN points to migrated price history schema.
        Raises:
            ValueError: If DSN is blank.
        Side Effects:
            None.
        """
        normalized_dsn = dsn.strip()
        if not normalized_dsn:
            raise ValueError("PsycopgPriceHistoryPostgresGateway requires non-empty dsn")
        self._dsn = normalized_dsn

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """
        Execute query and return one row mapped by column names.

        Args:
            query: SQL text.
            parameters: SQL bind parameters mapping.
        Returns:
            Mapping[str, Any] | None: One row or `None`.
        Assumptions:
            psycopg connection context manager handles commit/rollback.
        Raises:
            psycopg.Error: On database operation failure.
        Side Effects:
            Opens one database connection and executes one query.
        """
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            return _PsycopgConnectionSession(connection=connection).fetch_one(
                query=query,
                parameters=parameters,
            )

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            return _PsycopgConnectionSession(connection=connection).fetch_all(
                query=query,
                parameters=parameters,
            )

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            _PsycopgConnectionSession(connection=connection).execute(
                query=query,
                parameters=parameters,
            )

    @contextmanager
    def transaction(self, *, serializable: bool = True) -> Iterator[PriceHistorySqlSession]:
        """
        Run the wrapped block inside one explicit psycopg transaction.

        Args:
            serializable: Run at `SERIALIZABLE` isolation when true.
        Returns:
            Iterator[PriceHistorySqlSession]: Session bound to the transaction.
        Assumptions:
            Autocommit connection plus `connection.transaction()` emits
            `BEGIN ISOLATION LEVEL ...` and `COMMIT` / `ROLLBACK` explicitly.
        Raises:
            psycopg.Error: On database failure, including serialization failure on commit.
        Side Effects:
            Opens one database connection for the transaction lifetime.
        """
        with psycopg.connect(
            self._dsn,
            row_factory=cast(Any, dict_row),
            autocommit=True,
        ) as connection:
            if serializable:
                connection.isolation_level = psycopg.IsolationLevel.SERIALIZABLE
            with connection.transaction():
                yield _PsycopgConnectionSession(connection=connection)


__all__ = [
    "PriceHistoryPostgresGateway",
    "PriceHistorySqlSession",
    "PsycopgPriceHistoryPostgresGateway",
]
