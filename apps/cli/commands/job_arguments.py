from __future__ import annotations

import argparse

from apps.api.dto import decode_ingestion_job_payload
from pricehistory.contexts.price_history.domain.entities import IngestionJob


def add_job_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--key", required=True, help="Series key (token address or symbol)")
    parser.add_argument(
        "--start",
        required=True,
        help="Day to fetch prices from, YYYY-MM-DD",
    )
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Delete the stored series and rewrite it from the fetched batch",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to price_history.yaml (default: resolved from PRICE_HISTORY_ENV)",
    )
    parser.add_argument(
        "--report-format",
        choices=("text", "json"),
        default="text",
        help="Output format",
    )


def job_from_args(ns: argparse.Namespace) -> IngestionJob:
    """
    Build an `IngestionJob` through the same payload contract as the queue and admin API.

    Raises `IngestionJobPayloadError` on invalid key or start day.
    """
    return decode_ingestion_job_payload(
        payload={
            "key": ns.key,
            "forceRefresh": bool(ns.force_refresh),
            "requestedStart": ns.start,
        }
    )
