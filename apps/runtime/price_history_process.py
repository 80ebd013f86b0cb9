from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Protocol

from pricehistory.contexts.price_history.adapters.outbound.config import (
    PriceHistoryRuntimeConfig,
    load_price_history_runtime_config,
    resolve_price_history_config_path,
)

log = logging.getLogger(__name__)


class RunnableApp(Protocol):
    async def run(self, stop_event: asyncio.Event) -> None: ...


class AppBuilder(Protocol):
    def __call__(
        self,
        *,
        config_path: str,
        environ: Mapping[str, str],
        metrics_port: int,
    ) -> RunnableApp: ...


@dataclass(frozen=True, slots=True)
class PriceHistoryProcess:
    """
    Static description of one long-running price-history process (worker or scheduler).

    Parameters:
    - prog: console script name used in `--help` and failure logs.
    - component: `component=` value for structured log lines.
    - default_metrics_port: Prometheus port used without `--metrics-port`.
    - is_enabled: reads the process on/off switch from runtime config.
    """

    prog: str
    component: str
    default_metrics_port: int
    is_enabled: Callable[[PriceHistoryRuntimeConfig], bool]


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_parser(*, prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to price history runtime config (price_history.yaml).",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Prometheus metrics HTTP port (overrides the process default).",
    )
    return parser


def resolve_config_path(*, config_path: str | None, environ: Mapping[str, str]) -> Path:
    if config_path is not None and config_path.strip():
        return Path(config_path)
    return resolve_price_history_config_path(environ=environ)


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    """
    Route SIGINT/SIGTERM to the cooperative stop event of the running loop.

    Parameters:
    - stop_event: shared shutdown event.

    Returns:
    - None.

    Assumptions/Invariants:
    - Called from inside the running event loop.

    Errors/Exceptions:
    - None. Platforms without loop signal support fall back to `signal.signal`.

    Side effects:
    - Registers process signal handlers.
    """
    loop = asyncio.get_running_loop()

    def _mark_stop() -> None:
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _mark_stop)
        except NotImplementedError:
            signal.signal(sig, lambda *_args: _mark_stop())


async def serve(
    *,
    process: PriceHistoryProcess,
    build_app: AppBuilder,
    config_path: str | None,
    metrics_port: int | None,
    environ: Mapping[str, str],
) -> int:
    """
    Load config, build the process app and run it until a stop signal arrives.

    Parameters:
    - process: process description.
    - build_app: wiring factory for the process app.
    - config_path: optional `--config` override.
    - metrics_port: optional `--metrics-port` override.
    - environ: process environment.

    Returns:
    - Exit code `0`, also when the process is disabled in config.

    Assumptions/Invariants:
    - A disabled process never touches storage wiring.

    Errors/Exceptions:
    - `ValueError` for a non-positive metrics port.
    - Propagates config loading and wiring errors.

    Side effects:
    - Installs signal handlers, starts the app loop.
    """
    resolved_config_path = resolve_config_path(config_path=config_path, environ=environ)
    runtime_config = load_price_history_runtime_config(resolved_config_path)
    if not process.is_enabled(runtime_config):
        log.info(
            "component=%s status=disabled config_path=%s",
            process.component,
            resolved_config_path,
        )
        return 0

    if metrics_port is not None and metrics_port <= 0:
        raise ValueError("--metrics-port must be > 0 when provided")
    effective_port = metrics_port if metrics_port is not None else process.default_metrics_port

    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)
    app = build_app(
        config_path=str(resolved_config_path),
        environ=environ,
        metrics_port=effective_port,
    )
    await app.run(stop_event)
    return 0


def run_process(
    argv: list[str] | None,
    *,
    process: PriceHistoryProcess,
    build_app: AppBuilder,
) -> int:
    """Parse CLI args and run the process; any failure is logged and exits with `1`."""
    configure_logging()
    args = build_parser(prog=process.prog).parse_args(argv)
    try:
        return asyncio.run(
            serve(
                process=process,
                build_app=build_app,
                config_path=args.config,
                metrics_port=args.metrics_port,
                environ=os.environ,
            )
        )
    except Exception:  # noqa: BLE001
        log.exception("event=process_failed component=%s", process.component)
        return 1


__all__ = [
    "AppBuilder",
    "PriceHistoryProcess",
    "RunnableApp",
    "build_parser",
    "configure_logging",
    "install_signal_handlers",
    "resolve_config_path",
    "run_process",
    "serve",
]
