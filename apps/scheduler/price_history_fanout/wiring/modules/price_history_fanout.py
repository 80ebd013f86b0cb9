from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, start_http_server

from apps.cli.wiring.modules import PriceHistoryWiring
from pricehistory.contexts.price_history.application.dto import FanOutReport
from pricehistory.contexts.price_history.application.use_cases import FanOutStaleSeriesUseCase

log = logging.getLogger(__name__)


class PriceHistoryFanOutMetrics:
    """
    Prometheus metrics bundle for the price-history fan-out scheduler.
    """

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        """
        Create scheduler metric objects.

        Parameters:
        - registry: optional explicit Prometheus registry (tests can pass isolated one).

        Returns:
        - None.

        Assumptions/Invariants:
        - Metrics are instantiated once per scheduler process.

        Errors/Exceptions:
        - May raise registration errors on duplicate metric names.

        Side effects:
        - Registers metrics in the target Prometheus registry.
        """
        self.registry = registry if registry is not None else REGISTRY

        self.runs_total = Counter(
            "price_history_fanout_runs_total",
            "Fan-out cycle run count",
            registry=self.registry,
        )
        self.failures_total = Counter(
            "price_history_fanout_failures_total",
            "Fan-out cycle failure count",
            registry=self.registry,
        )
        self.run_duration_seconds = Histogram(
            "price_history_fanout_run_duration_seconds",
            "Fan-out cycle duration in seconds",
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0, 60.0),
            registry=self.registry,
        )
        self.keys_scanned_total = Counter(
            "price_history_fanout_keys_scanned_total",
            "Series keys scanned by fan-out cycles",
            registry=self.registry,
        )
        self.jobs_enqueued_total = Counter(
            "price_history_fanout_jobs_enqueued_total",
            "Ingestion jobs enqueued by fan-out grouped by reason",
            labelnames=("reason",),
            registry=self.registry,
        )

    def observe_report(self, *, report: FanOutReport) -> None:
        self.keys_scanned_total.inc(report.scanned_keys)
        for task in report.planned_tasks:
            self.jobs_enqueued_total.labels(reason=task.reason).inc()


class PriceHistoryFanOutApp:
    """
    Runtime loop running one fan-out cycle at startup and then every interval.

    Parameters:
    - use_case: fan-out use-case enqueueing jobs for stale series.
    - interval_seconds: delay between cycles.
    - metrics: scheduler metrics bundle.
    - metrics_port: HTTP port for `/metrics`.
    """

    def __init__(
        self,
        *,
        use_case: FanOutStaleSeriesUseCase,
        interval_seconds: float,
        metrics: PriceHistoryFanOutMetrics,
        metrics_port: int,
    ) -> None:
        if use_case is None:  # type: ignore[truthy-bool]
            raise ValueError("PriceHistoryFanOutApp requires use_case")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if metrics_port <= 0:
            raise ValueError("metrics_port must be > 0")
        self._use_case = use_case
        self._interval_seconds = interval_seconds
        self._metrics = metrics
        self._metrics_port = metrics_port

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run fan-out cycles until stop event is set.

        Parameters:
        - stop_event: cooperative shutdown event.

        Returns:
        - None.

        Assumptions/Invariants:
        - Enqueueing is safe to repeat; duplicate jobs are absorbed by the commit engine.

        Errors/Exceptions:
        - None. Cycle failures are logged and counted.

        Side effects:
        - Starts Prometheus endpoint.
        - Reads series store and inserts queue rows every cycle.
        """
        start_http_server(self._metrics_port, registry=self._metrics.registry)
        log.info("event=metrics_started component=price-history-fanout port=%s", self._metrics_port)

        await self.run_once()
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval_seconds)
            except TimeoutError:
                await self.run_once()

    async def run_once(self) -> FanOutReport | None:
        """
        Execute one fan-out cycle with metrics and error handling.

        Parameters:
        - None.

        Returns:
        - Cycle report, or `None` when the cycle failed.

        Assumptions/Invariants:
        - Store and queue calls are blocking and run in a worker thread.

        Errors/Exceptions:
        - None. Exceptions are logged and converted into failure metrics.

        Side effects:
        - Updates scheduler metrics.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        self._metrics.runs_total.inc()
        try:
            report = await asyncio.to_thread(self._use_case.run)
        except Exception:  # noqa: BLE001
            self._metrics.failures_total.inc()
            log.exception("event=fanout_failed component=price-history-fanout")
            return None
        finally:
            self._metrics.run_duration_seconds.observe(max(loop.time() - started, 0.0))
        self._metrics.observe_report(report=report)
        return report


def build_price_history_fanout_app(
    *,
    config_path: str,
    environ: Mapping[str, str],
    metrics_port: int,
) -> PriceHistoryFanOutApp:
    """
    Build fully wired price-history fan-out scheduler app.

    Parameters:
    - config_path: path to `price_history.yaml`.
    - environ: environment mapping with `PRICE_HISTORY_PG_DSN`.
    - metrics_port: Prometheus HTTP port.

    Returns:
    - Ready-to-run scheduler app instance.

    Assumptions/Invariants:
    - Series store and queue share one Postgres database.

    Errors/Exceptions:
    - Propagates config parsing and DSN errors.

    Side effects:
    - Creates Postgres gateway and Prometheus metric objects.
    """
    wiring = PriceHistoryWiring(environ=environ, config_path=config_path)
    return PriceHistoryFanOutApp(
        use_case=wiring.fanout_use_case(),
        interval_seconds=wiring.config().fanout.interval_seconds,
        metrics=PriceHistoryFanOutMetrics(),
        metrics_port=metrics_port,
    )


__all__ = [
    "PriceHistoryFanOutApp",
    "PriceHistoryFanOutMetrics",
    "build_price_history_fanout_app",
]
