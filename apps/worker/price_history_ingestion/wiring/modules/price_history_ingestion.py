from __future__ import annotations

import asyncio
import logging
import os
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Mapping

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from apps.api.dto import decode_ingestion_job_payload
from apps.cli.wiring.modules import PriceHistoryWiring
from pricehistory.contexts.price_history.application.ports import (
    IngestionJobPayloadDecoder,
    IngestionJobQueue,
)
from pricehistory.contexts.price_history.application.use_cases import (
    IngestionJobRunReport,
    ProcessIngestionJobUseCase,
)
from pricehistory.contexts.price_history.domain.entities import IngestionJob

_LOG = logging.getLogger(__name__)


class _ApiIngestionJobPayloadDecoder(IngestionJobPayloadDecoder):
    """
    Decode persisted queue payloads with the admin API request DTO contract.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/api/dto/ingestion_jobs.py
      - src/pricehistory/contexts/price_history/application/ports/
        ingestion_job_payload_decoder.py
    """

    def decode(self, *, payload: Mapping[str, Any]) -> IngestionJob:
        return decode_ingestion_job_payload(payload=payload)


class PriceHistoryIngestionMetrics:
    """
    Prometheus metrics bundle for the price-history ingestion worker process.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/worker/price_history_ingestion/main/main.py
      - src/pricehistory/contexts/price_history/application/use_cases/process_ingestion_job.py
    """

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        """
        Register worker metrics in provided or default Prometheus registry.

        Args:
            registry: Optional registry for tests or custom process setups.
        Returns:
            None.
        Assumptions:
            Metric names are stable across releases.
        Raises:
            ValueError: Propagated by Prometheus client on duplicate metric names.
        Side Effects:
            Registers metrics in target registry.
        """
        self.registry = registry or REGISTRY
        self.claim_total = Counter(
            "price_history_ingestion_claim_total",
            "Price history ingestion claimed jobs total",
            registry=self.registry,
        )
        self.written_total = Counter(
            "price_history_ingestion_written_total",
            "Price history ingestion jobs finished with a written outcome",
            registry=self.registry,
        )
        self.rejected_total = Counter(
            "price_history_ingestion_rejected_total",
            "Price history ingestion jobs finished with a rejected outcome",
            registry=self.registry,
        )
        self.failed_total = Counter(
            "price_history_ingestion_failed_total",
            "Price history ingestion jobs finished as failed",
            registry=self.registry,
        )
        self.retry_scheduled_total = Counter(
            "price_history_ingestion_retry_scheduled_total",
            "Price history ingestion jobs rescheduled after a transient failure",
            registry=self.registry,
        )
        self.lease_lost_total = Counter(
            "price_history_ingestion_lease_lost_total",
            "Price history ingestion lease-lost events total",
            registry=self.registry,
        )
        self.rows_inserted_total = Counter(
            "price_history_ingestion_rows_inserted_total",
            "Daily price rows inserted by ingestion jobs",
            registry=self.registry,
        )
        self.rows_deleted_total = Counter(
            "price_history_ingestion_rows_deleted_total",
            "Daily price rows deleted by refresh jobs",
            registry=self.registry,
        )
        self.commit_retries_total = Counter(
            "price_history_ingestion_commit_retries_total",
            "Commit attempts repeated after a write conflict",
            registry=self.registry,
        )
        self.job_duration_seconds = Histogram(
            "price_history_ingestion_job_duration_seconds",
            "Price history ingestion claimed job duration in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0, 60.0),
            registry=self.registry,
        )
        self.active_claimed_jobs = Gauge(
            "price_history_ingestion_active_claimed_jobs",
            "Active claimed ingestion jobs in current worker process",
            registry=self.registry,
        )

    def observe_job(self, *, report: IngestionJobRunReport, duration_seconds: float) -> None:
        """
        Observe one claimed job processing result and update counters/histograms.

        Args:
            report: Job processing report.
            duration_seconds: Total claimed job processing duration.
        Returns:
            None.
        Assumptions:
            Row counters are updated whenever the report carries an outcome.
        Raises:
            None.
        Side Effects:
            Updates Prometheus counters and histograms.
        """
        self.job_duration_seconds.observe(max(duration_seconds, 0.0))
        outcome = report.outcome
        if outcome is not None and outcome.status == "written":
            self.rows_inserted_total.inc(outcome.inserted)
            self.rows_deleted_total.inc(outcome.deleted)
            self.commit_retries_total.inc(max(outcome.attempts - 1, 0))

        if report.status == "succeeded":
            self.written_total.inc()
            return
        if report.status == "rejected":
            self.rejected_total.inc()
            return
        if report.status == "failed":
            self.failed_total.inc()
            return
        if report.status == "retry_scheduled":
            self.retry_scheduled_total.inc()
            return
        self.lease_lost_total.inc()


@dataclass(frozen=True, slots=True)
class PriceHistoryIngestionApp:
    """
    Runtime claim/poll loop wrapper for the price-history ingestion worker process.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/worker/price_history_ingestion/main/main.py
      - src/pricehistory/contexts/price_history/application/use_cases/process_ingestion_job.py
      - src/pricehistory/contexts/price_history/application/ports/ingestion_job_queue.py
    """

    claim_poll_seconds: float
    lease_seconds: int
    locked_by: str
    queue: IngestionJobQueue
    processor: ProcessIngestionJobUseCase
    metrics: PriceHistoryIngestionMetrics
    metrics_port: int

    def __post_init__(self) -> None:
        if self.claim_poll_seconds <= 0:
            raise ValueError("PriceHistoryIngestionApp.claim_poll_seconds must be > 0")
        if self.lease_seconds <= 0:
            raise ValueError("PriceHistoryIngestionApp.lease_seconds must be > 0")
        if not self.locked_by.strip():
            raise ValueError("PriceHistoryIngestionApp.locked_by must be non-empty")
        if self.metrics_port <= 0:
            raise ValueError("PriceHistoryIngestionApp.metrics_port must be > 0")
        if self.queue is None:  # type: ignore[truthy-bool]
            raise ValueError("PriceHistoryIngestionApp.queue is required")
        if self.processor is None:  # type: ignore[truthy-bool]
            raise ValueError("PriceHistoryIngestionApp.processor is required")
        if self.metrics is None:  # type: ignore[truthy-bool]
            raise ValueError("PriceHistoryIngestionApp.metrics is required")

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run claim loop until stop event is set.

        Args:
            stop_event: Cooperative shutdown signal from process entrypoint.
        Returns:
            None.
        Assumptions:
            Worker processes one claimed job at a time; the handler runs in a thread.
        Raises:
            Exception: Unexpected claim/process errors are logged and loop continues.
        Side Effects:
            Starts metrics HTTP server and performs storage/HTTP IO in loop.
        """
        start_http_server(self.metrics_port, registry=self.metrics.registry)
        _LOG.info(
            "event=metrics_started component=price-history-ingestion metrics_port=%s",
            self.metrics_port,
        )

        while not stop_event.is_set():
            try:
                claimed = self.queue.claim_next(
                    now=_utc_now(),
                    locked_by=self.locked_by,
                    lease_seconds=self.lease_seconds,
                )
            except Exception:  # noqa: BLE001
                _LOG.exception(
                    "event=claim_failed component=price-history-ingestion locked_by=%s",
                    self.locked_by,
                )
                await _wait_with_stop(
                    stop_event=stop_event,
                    timeout_seconds=self.claim_poll_seconds,
                )
                continue

            if claimed is None:
                await _wait_with_stop(
                    stop_event=stop_event,
                    timeout_seconds=self.claim_poll_seconds,
                )
                continue

            self.metrics.claim_total.inc()
            self.metrics.active_claimed_jobs.inc()
            started = perf_counter()
            try:
                report = await asyncio.to_thread(
                    self.processor.process_claimed_job,
                    job=claimed,
                    locked_by=self.locked_by,
                )
                self.metrics.observe_job(
                    report=report,
                    duration_seconds=max(perf_counter() - started, 0.0),
                )
                _LOG.info(
                    (
                        "event=job_processed component=price-history-ingestion job_id=%s "
                        "attempt=%s status=%s locked_by=%s"
                    ),
                    report.job_id,
                    report.attempt,
                    report.status,
                    self.locked_by,
                )
            except Exception:  # noqa: BLE001
                _LOG.exception(
                    (
                        "event=job_processing_crashed component=price-history-ingestion "
                        "job_id=%s attempt=%s locked_by=%s"
                    ),
                    claimed.job_id,
                    claimed.attempt,
                    self.locked_by,
                )
            finally:
                self.metrics.active_claimed_jobs.dec()


def build_price_history_ingestion_app(
    *,
    config_path: str,
    environ: Mapping[str, str],
    metrics_port: int,
) -> PriceHistoryIngestionApp:
    """
    Build fully wired ingestion worker app with fail-fast dependencies.

    Args:
        config_path: Path to `price_history.yaml` runtime config.
        environ: Process environment mapping.
        metrics_port: Prometheus metrics HTTP server port.
    Returns:
        PriceHistoryIngestionApp: Ready-to-run worker app.
    Assumptions:
        Runtime environment includes `PRICE_HISTORY_PG_DSN`.
    Raises:
        ValueError: If required environment/settings are missing or invalid.
        FileNotFoundError: If runtime config cannot be loaded.
    Side Effects:
        Initializes storage and HTTP adapters.
    """
    if metrics_port <= 0:
        raise ValueError("build_price_history_ingestion_app metrics_port must be > 0")

    wiring = PriceHistoryWiring(environ=environ, config_path=config_path)
    queue_config = wiring.config().queue
    queue = wiring.queue()
    processor = ProcessIngestionJobUseCase(
        queue=queue,
        decoder=_ApiIngestionJobPayloadDecoder(),
        handler=wiring.ingest_use_case(),
        clock=wiring.clock,
        retry_delay_seconds=queue_config.retry_delay_seconds,
    )
    return PriceHistoryIngestionApp(
        claim_poll_seconds=queue_config.claim_poll_seconds,
        lease_seconds=queue_config.lease_seconds,
        locked_by=_build_locked_by(),
        queue=queue,
        processor=processor,
        metrics=PriceHistoryIngestionMetrics(),
        metrics_port=metrics_port,
    )


async def _wait_with_stop(*, stop_event: asyncio.Event, timeout_seconds: float) -> None:
    """Wait for stop event with timeout, returning early on cooperative shutdown."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout_seconds)
    except TimeoutError:
        return


def _build_locked_by() -> str:
    """Build lease owner identifier in `<hostname>-<pid>` format."""
    hostname = socket.gethostname().strip() or "unknown-host"
    return f"{hostname}-{os.getpid()}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "PriceHistoryIngestionApp",
    "PriceHistoryIngestionMetrics",
    "build_price_history_ingestion_app",
]
