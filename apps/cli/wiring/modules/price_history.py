from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from pricehistory.contexts.price_history.adapters.outbound.clients import RestPriceSource
from pricehistory.contexts.price_history.adapters.outbound.clients.common_http import (
    RequestsHttpClient,
)
from pricehistory.contexts.price_history.adapters.outbound.config import (
    PriceHistoryRuntimeConfig,
    load_price_history_runtime_config,
    resolve_price_history_config_path,
)
from pricehistory.contexts.price_history.adapters.outbound.persistence.postgres import (
    PostgresIngestionJobQueue,
    PostgresSeriesStore,
    PsycopgPriceHistoryPostgresGateway,
)
from pricehistory.contexts.price_history.adapters.outbound.time import SystemSleeper
from pricehistory.contexts.price_history.application.ports import Clock
from pricehistory.contexts.price_history.application.services import (
    IdempotentCommitEngine,
    PriceHistoryFanOutPlanner,
    WatermarkResolver,
)
from pricehistory.contexts.price_history.application.use_cases import (
    EnqueueIngestionJobUseCase,
    FanOutStaleSeriesUseCase,
    IngestPriceHistoryUseCase,
)
from pricehistory.platform.time import SystemClock

PG_DSN_ENV_KEY = "PRICE_HISTORY_PG_DSN"
SOURCE_API_KEY_ENV_KEY = "PRICE_HISTORY_SOURCE_API_KEY"


def require_postgres_dsn(*, environ: Mapping[str, str]) -> str:
    """
    Read Postgres DSN from environment.

    Parameters:
    - environ: runtime environment mapping.

    Returns:
    - Non-empty DSN string.

    Assumptions/Invariants:
    - Secrets are never read from YAML.

    Errors/Exceptions:
    - `ValueError` if `PRICE_HISTORY_PG_DSN` is missing or blank.

    Side effects:
    - None.
    """
    dsn = environ.get(PG_DSN_ENV_KEY, "").strip()
    if not dsn:
        raise ValueError(f"{PG_DSN_ENV_KEY} is required")
    return dsn


@dataclass(slots=True)
class PriceHistoryWiring:
    """
    Composition root shared by price-history processes (worker, scheduler, API, CLI).

    Config comes from YAML, secrets from env. Adapters are built lazily and cached, so one
    process shares a single Postgres gateway.
    """

    environ: Mapping[str, str]
    config_path: str | None = None
    clock: Clock = field(default_factory=SystemClock)
    _config: PriceHistoryRuntimeConfig | None = None
    _gateway: PsycopgPriceHistoryPostgresGateway | None = None

    def config(self) -> PriceHistoryRuntimeConfig:
        if self._config is None:
            path = (
                Path(self.config_path)
                if self.config_path is not None
                else resolve_price_history_config_path(environ=self.environ)
            )
            self._config = load_price_history_runtime_config(path)
        return self._config

    def gateway(self) -> PsycopgPriceHistoryPostgresGateway:
        if self._gateway is None:
            self._gateway = PsycopgPriceHistoryPostgresGateway(
                dsn=require_postgres_dsn(environ=self.environ)
            )
        return self._gateway

    def series_store(self) -> PostgresSeriesStore:
        return PostgresSeriesStore(gateway=self.gateway())

    def queue(self) -> PostgresIngestionJobQueue:
        return PostgresIngestionJobQueue(
            gateway=self.gateway(),
            max_attempts=self.config().queue.max_attempts,
        )

    def price_source(self) -> RestPriceSource:
        api_key = self.environ.get(SOURCE_API_KEY_ENV_KEY, "").strip() or None
        return RestPriceSource(
            cfg=self.config().source,
            http=RequestsHttpClient(),
            api_key=api_key,
        )

    def ingest_use_case(self) -> IngestPriceHistoryUseCase:
        """
        Build the ingestion handler over Postgres and the REST price source.

        Parameters:
        - None.

        Returns:
        - Ready-to-run `IngestPriceHistoryUseCase`.

        Assumptions/Invariants:
        - Resolver and commit engine share one store, so watermark reads and commits hit the
          same table.

        Errors/Exceptions:
        - Propagates config parsing and DSN errors.

        Side effects:
        - Loads runtime config from filesystem.
        """
        store = self.series_store()
        ingestion_cfg = self.config().ingestion
        return IngestPriceHistoryUseCase(
            price_source=self.price_source(),
            watermark_resolver=WatermarkResolver(store=store),
            commit_engine=IdempotentCommitEngine(
                store=store,
                sleeper=SystemSleeper(),
                max_attempts=ingestion_cfg.commit_max_attempts,
                retry_backoff_seconds=ingestion_cfg.commit_retry_backoff_seconds,
            ),
        )

    def enqueue_use_case(self) -> EnqueueIngestionJobUseCase:
        return EnqueueIngestionJobUseCase(queue=self.queue(), clock=self.clock)

    def fanout_use_case(self) -> FanOutStaleSeriesUseCase:
        fanout_cfg = self.config().fanout
        return FanOutStaleSeriesUseCase(
            latest_day_reader=self.series_store(),
            queue=self.queue(),
            planner=PriceHistoryFanOutPlanner(initial_start_day=fanout_cfg.initial_start_day),
            clock=self.clock,
            tracked_keys=fanout_cfg.tracked_keys,
        )


__all__ = [
    "PG_DSN_ENV_KEY",
    "SOURCE_API_KEY_ENV_KEY",
    "PriceHistoryWiring",
    "require_postgres_dsn",
]
