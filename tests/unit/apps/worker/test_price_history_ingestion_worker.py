from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import UUID

import pytest
from prometheus_client import CollectorRegistry

import apps.worker.price_history_ingestion.main.main as worker_main
from apps.worker.price_history_ingestion.wiring.modules import (
    PriceHistoryIngestionApp,
    PriceHistoryIngestionMetrics,
)
from apps.worker.price_history_ingestion.wiring.modules import (
    price_history_ingestion as worker_module,
)
from pricehistory.contexts.price_history.adapters.outbound.persistence.in_memory import (
    InMemoryIngestionJobQueue,
)
from pricehistory.contexts.price_history.application.dto import IngestionOutcome
from pricehistory.contexts.price_history.application.use_cases import (
    IngestionJobRunReport,
    ProcessIngestionJobUseCase,
)
from pricehistory.contexts.price_history.domain.entities import IngestionJob
from pricehistory.platform.time import SystemClock

_JOB_ID = UUID("00000000-0000-0000-0000-0000000000a1")
_TEST_CONFIG = Path(__file__).resolve().parents[4] / "configs" / "test" / "price_history.yaml"


class _StoppingHandler:
    """
    Handler fake that returns one outcome and requests worker shutdown.

    Args:
        stop_event: Worker stop event set after the first handled job.
        outcome: Outcome returned to the processor.
    Returns:
        None.
    Assumptions:
        Worker loop re-checks the stop event after each processed job.
    Raises:
        None.
    Side Effects:
        Sets stop event.
    """

    def __init__(self, *, stop_event: asyncio.Event, outcome: IngestionOutcome) -> None:
        self._stop_event = stop_event
        self._outcome = outcome
        self.jobs: list[IngestionJob] = []

    def handle(self, *, job: IngestionJob) -> IngestionOutcome:
        self.jobs.append(job)
        self._stop_event.set()
        return self._outcome


def _sample(registry: CollectorRegistry, name: str) -> float:
    value = registry.get_sample_value(name)
    return 0.0 if value is None else value


def test_metrics_observe_written_report_updates_row_counters() -> None:
    """
    Verify written outcomes feed row counters and repeated commits count as retries.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Isolated registry keeps samples independent from process-wide metrics.
    Raises:
        AssertionError: If counters differ from the observed report.
    Side Effects:
        None.
    """
    registry = CollectorRegistry()
    metrics = PriceHistoryIngestionMetrics(registry=registry)

    metrics.observe_job(
        report=IngestionJobRunReport(
            job_id=_JOB_ID,
            attempt=1,
            status="succeeded",
            outcome=IngestionOutcome.written(inserted=4, deleted=21, attempts=3),
        ),
        duration_seconds=0.2,
    )

    assert _sample(registry, "price_history_ingestion_written_total") == 1.0
    assert _sample(registry, "price_history_ingestion_rows_inserted_total") == 4.0
    assert _sample(registry, "price_history_ingestion_rows_deleted_total") == 21.0
    assert _sample(registry, "price_history_ingestion_commit_retries_total") == 2.0
    assert _sample(registry, "price_history_ingestion_job_duration_seconds_count") == 1.0


@pytest.mark.parametrize(
    ("status", "metric"),
    [
        ("rejected", "price_history_ingestion_rejected_total"),
        ("failed", "price_history_ingestion_failed_total"),
        ("retry_scheduled", "price_history_ingestion_retry_scheduled_total"),
        ("lease_lost", "price_history_ingestion_lease_lost_total"),
    ],
)
def test_metrics_observe_counts_each_status(status: str, metric: str) -> None:
    registry = CollectorRegistry()
    metrics = PriceHistoryIngestionMetrics(registry=registry)

    metrics.observe_job(
        report=IngestionJobRunReport(
            job_id=_JOB_ID,
            attempt=1,
            status=status,  # type: ignore[arg-type]
        ),
        duration_seconds=-1.0,
    )

    assert _sample(registry, metric) == 1.0
    assert _sample(registry, "price_history_ingestion_written_total") == 0.0
    assert _sample(registry, "price_history_ingestion_job_duration_seconds_sum") == 0.0


def test_app_rejects_invalid_runtime_settings() -> None:
    queue = InMemoryIngestionJobQueue()
    metrics = PriceHistoryIngestionMetrics(registry=CollectorRegistry())

    with pytest.raises(ValueError, match="locked_by"):
        PriceHistoryIngestionApp(
            claim_poll_seconds=0.1,
            lease_seconds=30,
            locked_by="  ",
            queue=queue,
            processor=object(),  # type: ignore[arg-type]
            metrics=metrics,
            metrics_port=9210,
        )


def test_app_run_claims_processes_and_completes_one_job(monkeypatch) -> None:
    """
    Verify worker loop claims a queued job, runs the handler and completes the job.

    Args:
        monkeypatch: pytest fixture replacing the metrics HTTP server.
    Returns:
        None.
    Assumptions:
        Handler sets the stop event, so the loop exits after one job.
    Raises:
        AssertionError: If the job does not reach `succeeded` state.
    Side Effects:
        None.
    """
    started_ports: list[int] = []
    monkeypatch.setattr(
        worker_module,
        "start_http_server",
        lambda port, registry: started_ports.append(port),
    )
    queue = InMemoryIngestionJobQueue(max_attempts=3)
    job_id = queue.enqueue_payload(
        payload={"key": "0xAA", "forceRefresh": False, "requestedStart": "2024-01-01"},
        now=datetime.now(timezone.utc) - timedelta(minutes=1),
    )
    registry = CollectorRegistry()

    async def _scenario() -> _StoppingHandler:
        stop_event = asyncio.Event()
        handler = _StoppingHandler(
            stop_event=stop_event,
            outcome=IngestionOutcome.written(inserted=3, deleted=0, attempts=1),
        )
        app = PriceHistoryIngestionApp(
            claim_poll_seconds=0.01,
            lease_seconds=30,
            locked_by="worker-test",
            queue=queue,
            processor=ProcessIngestionJobUseCase(
                queue=queue,
                decoder=worker_module._ApiIngestionJobPayloadDecoder(),
                handler=handler,  # type: ignore[arg-type]
                clock=SystemClock(),
                retry_delay_seconds=0,
            ),
            metrics=PriceHistoryIngestionMetrics(registry=registry),
            metrics_port=9210,
        )
        await asyncio.wait_for(app.run(stop_event), timeout=5.0)
        return handler

    handler = asyncio.run(_scenario())

    assert started_ports == [9210]
    assert [job.key.value for job in handler.jobs] == ["0xaa"]
    stored = queue.get(job_id=job_id)
    assert stored is not None
    assert stored.state == "succeeded"
    assert queue.result_of(job_id=job_id) == {
        "status": "written",
        "reason": None,
        "inserted": 3,
        "deleted": 0,
        "attempts": 1,
    }
    assert _sample(registry, "price_history_ingestion_claim_total") == 1.0
    assert _sample(registry, "price_history_ingestion_active_claimed_jobs") == 0.0


def test_main_returns_zero_when_queue_is_disabled(monkeypatch, tmp_path: Path) -> None:
    """
    Verify worker entrypoint exits cleanly without wiring when the queue is disabled.

    Args:
        monkeypatch: pytest fixture replacing app builder.
        tmp_path: Temporary directory for the runtime config copy.
    Returns:
        None.
    Assumptions:
        Disabled queue short-circuits before any storage wiring.
    Raises:
        AssertionError: If builder is invoked or exit code differs.
    Side Effects:
        Writes one temporary YAML file.
    """
    config_path = tmp_path / "price_history.yaml"
    config_path.write_text(
        _TEST_CONFIG.read_text(encoding="utf-8").replace("enabled: true", "enabled: false"),
        encoding="utf-8",
    )

    def _unexpected_build(**_kwargs: object) -> PriceHistoryIngestionApp:
        raise AssertionError("worker app must not be built when queue is disabled")

    monkeypatch.setattr(worker_main, "build_price_history_ingestion_app", _unexpected_build)

    assert worker_main.main(["--config", str(config_path)]) == 0


def test_main_returns_one_on_invalid_metrics_port() -> None:
    assert worker_main.main(["--config", str(_TEST_CONFIG), "--metrics-port", "0"]) == 1
