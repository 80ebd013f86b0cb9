from __future__ import annotations

from apps.runtime.price_history_process import PriceHistoryProcess, run_process
from apps.scheduler.price_history_fanout.wiring.modules import (
    build_price_history_fanout_app,
)

PROCESS = PriceHistoryProcess(
    prog="price-history-fanout",
    component="price-history-fanout",
    default_metrics_port=9211,
    is_enabled=lambda config: config.fanout.enabled,
)


def main(argv: list[str] | None = None) -> int:
    """
    Run periodic fan-out cycles until SIGINT/SIGTERM.

    Parameters:
    - argv: optional arguments without program name.

    Returns:
    - `0` on clean shutdown or when `fanout.enabled` is false, `1` on failure.
    """
    return run_process(argv, process=PROCESS, build_app=build_price_history_fanout_app)


if __name__ == "__main__":
    raise SystemExit(main())
