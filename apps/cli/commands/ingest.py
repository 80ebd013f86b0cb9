from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Mapping, Sequence

from apps.cli.commands.job_arguments import add_job_arguments, job_from_args
from apps.cli.wiring.modules import PriceHistoryWiring
from pricehistory.contexts.price_history.application.use_cases import (
    map_price_history_exception,
)

log = logging.getLogger(__name__)


class IngestCli:
    """
    `price-history ingest`: run one ingestion job inline, bypassing the queue.

    Exit codes: 0 for `written` and `rejected` outcomes, 1 on fetch/storage/validation errors.
    """

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
            outcome = wiring.ingest_use_case().handle(job=job)
        except Exception as error:  # noqa: BLE001
            platform_error = map_price_history_exception(error=error)
            if platform_error.code == "unexpected_error":
                log.exception("event=cli_ingest_failed key=%s", ns.key)
            print(platform_error.to_json(), file=sys.stderr)
            return 1

        if ns.report_format == "json":
            print(json.dumps(outcome.to_mapping(), ensure_ascii=False))
        else:
            print(
                "ingest report:\n"
                f"- key: {job.key}\n"
                f"- status: {outcome.status}\n"
                f"- reason: {outcome.reason or '-'}\n"
                f"- inserted: {outcome.inserted}\n"
                f"- deleted: {outcome.deleted}\n"
                f"- commit attempts: {outcome.attempts}\n"
            )
        return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="price-history ingest")
    add_job_arguments(p)
    return p
