from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Mapping, Sequence

from apps.cli.commands.job_arguments import add_job_arguments, job_from_args
from apps.cli.wiring.modules import PriceHistoryWiring
from pricehistory.contexts.price_history.application.use_cases import (
    map_price_history_exception,
)


class EnqueueCli:
    """`price-history enqueue`: put one ingestion job on the shared queue."""

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        wiring: PriceHistoryWiring | None = None,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._wiring = wiring

    def run(self, argv: Sequence[str]) -> int:
        ns = _build_parser().parse_args(list(argv))
        wiring = (
            self._wiring
            if self._wiring is not None
            else PriceHistoryWiring(environ=self._environ, config_path=ns.config)
        )

        try:
            job = job_from_args(ns)
            job_id = wiring.enqueue_use_case().execute(job=job)
        except Exception as error:  # noqa: BLE001
            platform_error = map_price_history_exception(error=error)
            print(platform_error.to_json(), file=sys.stderr)
            return 1

        if ns.report_format == "json":
            print(json.dumps({"job_id": str(job_id), **job.to_payload()}, ensure_ascii=False))
        else:
            print(f"enqueued job {job_id} key={job.key} requested_start={job.requested_start}")
        return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="price-history enqueue")
    add_job_arguments(p)
    return p
