from __future__ import annotations

import os

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import URL, Connection
from sqlalchemy.engine.url import make_url

from alembic import context
from apps.migrations.main import PG_DSN_ENV_KEY, to_sqlalchemy_psycopg_url

config = context.config

# Raw SQL migrations, no ORM metadata.
target_metadata = None


def _target_url() -> URL:
    """
    Resolve migration target URL from `PRICE_HISTORY_PG_DSN` or `alembic.ini`.

    The URL is kept as an object and never written back into the ConfigParser options,
    so percent-encoded passwords cannot break option interpolation.
    """
    dsn = os.environ.get(PG_DSN_ENV_KEY, "").strip()
    if dsn:
        return to_sqlalchemy_psycopg_url(dsn=dsn)
    ini_url = config.get_main_option("sqlalchemy.url")
    if not ini_url:
        raise ValueError(f"sqlalchemy.url is not configured and {PG_DSN_ENV_KEY} is empty")
    return make_url(ini_url)


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """
    Emit migration SQL without a database connection.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Target URL only selects the SQL dialect.
    Raises:
        ValueError: If no target URL is configured.
    Side Effects:
        Writes SQL script to Alembic output.

    Related:
      - alembic/versions/20260301_0001_price_history_v1.py
    """
    context.configure(
        url=_target_url().render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Apply migrations through the advisory-locked connection or a fresh engine.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `apps.migrations.main` injects its locked connection via `config.attributes`.
        Plain `alembic upgrade` invocations open their own connection.
    Raises:
        Exception: Alembic or driver errors.
    Side Effects:
        Applies schema changes.
    """
    injected = config.attributes.get("connection")
    if isinstance(injected, Connection):
        _migrate(injected)
        return

    engine = create_engine(_target_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _migrate(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
