from __future__ import annotations

from apps.runtime.price_history_process import PriceHistoryProcess, run_process
from apps.worker.price_history_ingestion.wiring.modules import (
    build_price_history_ingestion_app,
)

PROCESS = PriceHistoryProcess(
    prog="price-history-worker",
    component="price-history-ingestion",
    default_metrics_port=9210,
    is_enabled=lambda config: config.queue.enabled,
)


def main(argv: list[str] | None = None) -> int:
    """
    Run the ingestion worker until SIGINT/SIGTERM.

    Args:
        argv: Optional arguments without program name.
    Returns:
        int: `0` on clean shutdown or when `queue.enabled` is false, `1` on failure.
    Assumptions:
        `PRICE_HISTORY_PG_DSN` is set in the environment.
    Raises:
        None.
    Side Effects:
        Claims and processes queue jobs, serves Prometheus metrics.
    """
    return run_process(argv, process=PROCESS, build_app=build_price_history_ingestion_app)


if __name__ == "__main__":
    raise SystemExit(main())
