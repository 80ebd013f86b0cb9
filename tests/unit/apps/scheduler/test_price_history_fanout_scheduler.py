from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path
from uuid import UUID

import pytest
from prometheus_client import CollectorRegistry

import apps.scheduler.price_history_fanout.main.main as scheduler_main
from apps.scheduler.price_history_fanout.wiring.modules import (
    PriceHistoryFanOutApp,
    PriceHistoryFanOutMetrics,
)
from apps.scheduler.price_history_fanout.wiring.modules import (
    price_history_fanout as scheduler_module,
)
from pricehistory.contexts.price_history.application.dto import FanOutReport, FanOutTask
from pricehistory.shared_kernel.primitives import SeriesKey

_TEST_CONFIG = Path(__file__).resolve().parents[4] / "configs" / "test" / "price_history.yaml"

_REPORT = FanOutReport(
    scanned_keys=3,
    planned_tasks=(
        FanOutTask(key=SeriesKey("0xaa"), requested_start=date(2024, 1, 4), reason="stale_series"),
        FanOutTask(key=SeriesKey("0xbb"), requested_start=date(2023, 1, 1), reason="new_series"),
    ),
    enqueued_job_ids=(
        UUID("00000000-0000-0000-0000-0000000000b1"),
        UUID("00000000-0000-0000-0000-0000000000b2"),
    ),
)


class _FanOutStub:
    """
    Fan-out use-case stub returning queued reports or raising queued errors.

    Parameters:
    - results: cycle results consumed in order.

    Returns:
    - None.
    """

    def __init__(self, *results: FanOutReport | Exception) -> None:
        self._results = list(results)
        self.calls = 0

    def run(self) -> FanOutReport:
        self.calls += 1
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _sample(registry: CollectorRegistry, name: str, **labels: str) -> float:
    value = registry.get_sample_value(name, labels or None)
    return 0.0 if value is None else value


def _app(use_case: _FanOutStub, registry: CollectorRegistry) -> PriceHistoryFanOutApp:
    return PriceHistoryFanOutApp(
        use_case=use_case,  # type: ignore[arg-type]
        interval_seconds=60.0,
        metrics=PriceHistoryFanOutMetrics(registry=registry),
        metrics_port=9211,
    )


def test_run_once_records_report_metrics() -> None:
    """
    Ensure one successful cycle updates scanned and per-reason enqueue counters.

    Parameters:
    - None.

    Returns:
    - None.
    """
    registry = CollectorRegistry()
    app = _app(_FanOutStub(_REPORT), registry)

    report = asyncio.run(app.run_once())

    assert report == _REPORT
    assert _sample(registry, "price_history_fanout_runs_total") == 1.0
    assert _sample(registry, "price_history_fanout_keys_scanned_total") == 3.0
    enqueued = "price_history_fanout_jobs_enqueued_total"
    assert _sample(registry, enqueued, reason="stale_series") == 1.0
    assert _sample(registry, enqueued, reason="new_series") == 1.0
    assert _sample(registry, "price_history_fanout_failures_total") == 0.0


def test_run_once_swallows_cycle_failure_and_counts_it() -> None:
    registry = CollectorRegistry()
    app = _app(_FanOutStub(RuntimeError("store down")), registry)

    assert asyncio.run(app.run_once()) is None
    assert _sample(registry, "price_history_fanout_failures_total") == 1.0
    assert _sample(registry, "price_history_fanout_run_duration_seconds_count") == 1.0


def test_run_executes_startup_cycle_and_stops_on_event(monkeypatch) -> None:
    """
    Ensure scheduler runs a cycle at startup and exits once stop is requested.

    Parameters:
    - monkeypatch: pytest fixture replacing the metrics HTTP server.

    Returns:
    - None.
    """
    started_ports: list[int] = []
    monkeypatch.setattr(
        scheduler_module,
        "start_http_server",
        lambda port, registry: started_ports.append(port),
    )
    use_case = _FanOutStub(_REPORT)
    app = _app(use_case, CollectorRegistry())

    async def _scenario() -> None:
        stop_event = asyncio.Event()
        stop_event.set()
        await asyncio.wait_for(app.run(stop_event), timeout=5.0)

    asyncio.run(_scenario())

    assert started_ports == [9211]
    assert use_case.calls == 1


def test_app_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError, match="interval_seconds"):
        PriceHistoryFanOutApp(
            use_case=_FanOutStub(),  # type: ignore[arg-type]
            interval_seconds=0,
            metrics=PriceHistoryFanOutMetrics(registry=CollectorRegistry()),
            metrics_port=9211,
        )


def test_main_returns_zero_when_fanout_is_disabled(monkeypatch) -> None:
    """
    Ensure entrypoint short-circuits before wiring when fan-out is disabled in config.

    Parameters:
    - monkeypatch: pytest fixture replacing the app builder.

    Returns:
    - None.
    """

    def _unexpected_build(**_kwargs: object) -> PriceHistoryFanOutApp:
        raise AssertionError("scheduler app must not be built when fan-out is disabled")

    monkeypatch.setattr(scheduler_main, "build_price_history_fanout_app", _unexpected_build)

    assert scheduler_main.main(["--config", str(_TEST_CONFIG)]) == 0


def test_main_returns_one_when_config_is_missing(tmp_path: Path) -> None:
    missing = tmp_path / "missing.yaml"

    assert scheduler_main.main(["--config", str(missing)]) == 1
