from .price_history import (
    PG_DSN_ENV_KEY,
    SOURCE_API_KEY_ENV_KEY,
    PriceHistoryWiring,
    require_postgres_dsn,
)

__all__ = [
    "PG_DSN_ENV_KEY",
    "SOURCE_API_KEY_ENV_KEY",
    "PriceHistoryWiring",
    "require_postgres_dsn",
]
