from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Mapping

from psycopg.conninfo import conninfo_to_dict
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection
from sqlalchemy.engine.url import make_url

from alembic import command
from alembic.config import Config

log = logging.getLogger(__name__)

PG_DSN_ENV_KEY = "PRICE_HISTORY_PG_DSN"
_DEFAULT_LOCK_KEY = 72031957410
_POSTGRES_URL_PREFIXES: tuple[str, ...] = (
    "postgresql+psycopg://",
    "postgresql://",
    "postgres://",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="price-history-migrate")
    parser.add_argument(
        "--dsn",
        default="",
        help=f"Postgres DSN. Falls back to ${PG_DSN_ENV_KEY} when omitted.",
    )
    parser.add_argument(
        "--lock-key",
        type=int,
        default=_DEFAULT_LOCK_KEY,
        help="Advisory lock key used with pg_advisory_lock during migration upgrade.",
    )
    return parser


def resolve_dsn(*, arg_dsn: str, environ: Mapping[str, str]) -> str:
    """
    Resolve Postgres DSN from CLI argument or environment variable.

    Args:
        arg_dsn: CLI `--dsn` value.
        environ: Environment mapping.
    Returns:
        str: Non-empty DSN string.
    Assumptions:
        CLI argument wins over `PRICE_HISTORY_PG_DSN`.
    Raises:
        ValueError: If DSN is missing.
    Side Effects:
        None.
    """
    dsn = arg_dsn.strip() or environ.get(PG_DSN_ENV_KEY, "").strip()
    if not dsn:
        raise ValueError(f"Migration DSN is required via --dsn or {PG_DSN_ENV_KEY}")
    return dsn


def to_sqlalchemy_psycopg_url(*, dsn: str) -> URL:
    """
    Normalize a URL or libpq conninfo DSN to a SQLAlchemy `postgresql+psycopg` URL.

    Args:
        dsn: Raw Postgres DSN.
    Returns:
        URL: SQLAlchemy URL using the psycopg 3 driver.
    Assumptions:
        DSN is either a PostgreSQL URL or libpq `key=value` conninfo string.
    Raises:
        ValueError: If DSN is empty, malformed, or uses another database driver.
    Side Effects:
        None.

    Related:
      - alembic/env.py
      - src/pricehistory/contexts/price_history/adapters/outbound/persistence/postgres/
        gateway.py
    """
    normalized = dsn.strip()
    if not normalized:
        raise ValueError("Postgres DSN cannot be empty")
    if normalized.startswith(_POSTGRES_URL_PREFIXES):
        parsed_url = make_url(normalized)
        if parsed_url.drivername not in {"postgresql", "postgres", "postgresql+psycopg"}:
            raise ValueError("Postgres URL DSN must use postgresql:// or postgres:// scheme")
        return parsed_url.set(drivername="postgresql+psycopg")
    return _url_from_conninfo(conninfo_dsn=normalized)


def _url_from_conninfo(*, conninfo_dsn: str) -> URL:
    try:
        fields = conninfo_to_dict(conninfo_dsn)
    except Exception as error:  # noqa: BLE001
        raise ValueError("Postgres DSN must be URL or libpq conninfo format") from error

    raw_port = str(fields.pop("port", "")).strip()
    port: int | None = None
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError as error:
            raise ValueError("Conninfo port must be numeric when provided") from error

    database = str(fields.pop("dbname", "")).strip() or None
    host = str(fields.get("host", fields.get("hostaddr", ""))).strip() or None
    user = str(fields.get("user", "")).strip() or None
    password = str(fields.get("password", "")).strip() or None
    query = {
        key: str(value)
        for key, value in sorted(fields.items())
        if key not in {"host", "hostaddr", "password", "user"} and str(value)
    }
    return URL.create(
        "postgresql+psycopg",
        username=user,
        password=password,
        host=host,
        port=port,
        database=database,
        query=query,
    )


def _build_alembic_config(*, repo_root: Path) -> Config:
    alembic_ini = repo_root / "alembic.ini"
    if not alembic_ini.exists():
        raise ValueError(f"Missing Alembic config file: {alembic_ini}")
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(repo_root / "alembic"))
    return config


def _upgrade_head_under_lock(*, config: Config, sqlalchemy_url: URL, lock_key: int) -> None:
    """
    Run `alembic upgrade head` while holding a Postgres advisory lock.

    Args:
        config: Prepared Alembic config.
        sqlalchemy_url: Target database URL.
        lock_key: Advisory lock key shared by all migration runners.
    Returns:
        None.
    Assumptions:
        Lock is held on the same connection Alembic migrates through.
    Raises:
        Exception: Any DB or Alembic failure is propagated.
    Side Effects:
        Applies DB schema migrations.
    """
    engine = create_engine(sqlalchemy_url, pool_pre_ping=True)
    with engine.connect() as connection:
        _advisory_lock(connection=connection, lock_key=lock_key, acquire=True)
        try:
            config.attributes["connection"] = connection
            log.info("event=migration_started target=head")
            command.upgrade(config, "head")
            connection.commit()
            log.info("event=migration_succeeded")
        except Exception:  # noqa: BLE001
            connection.rollback()
            raise
        finally:
            _advisory_lock(connection=connection, lock_key=lock_key, acquire=False)
            connection.commit()


def _advisory_lock(*, connection: Connection, lock_key: int, acquire: bool) -> None:
    function = "pg_advisory_lock" if acquire else "pg_advisory_unlock"
    log.info("event=advisory_lock function=%s lock_key=%s", function, lock_key)
    connection.execute(text(f"SELECT {function}(:lock_key)"), {"lock_key": lock_key})


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = _build_parser().parse_args(argv)

    try:
        dsn = resolve_dsn(arg_dsn=args.dsn, environ=os.environ)
        sqlalchemy_url = to_sqlalchemy_psycopg_url(dsn=dsn)
        repo_root = Path(__file__).resolve().parents[2]
        config = _build_alembic_config(repo_root=repo_root)
        _upgrade_head_under_lock(
            config=config,
            sqlalchemy_url=sqlalchemy_url,
            lock_key=args.lock_key,
        )
    except Exception:  # noqa: BLE001
        log.exception("event=migration_failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
