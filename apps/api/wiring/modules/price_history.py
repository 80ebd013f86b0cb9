"""
Composition helpers for the price-history admin API module.

Docs:
  - docs/architecture/price-history/price-history-ingestion-v1.md
"""

from __future__ import annotations

from typing import Mapping

from fastapi import APIRouter

from apps.api.routes import build_admin_token_dependency, build_ingestion_jobs_router
from apps.cli.wiring.modules import PriceHistoryWiring

ADMIN_TOKEN_ENV_KEY = "PRICE_HISTORY_ADMIN_TOKEN"


def build_price_history_admin_router(
    *,
    environ: Mapping[str, str],
    wiring: PriceHistoryWiring | None = None,
) -> APIRouter:
    """
    Build fully wired admin router for manual ingestion triggers.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/api/routes/ingestion_jobs.py
      - apps/api/main/app.py
      - apps/cli/wiring/modules/price_history.py

    Args:
        environ: Runtime environment mapping.
        wiring: Optional prebuilt composition root.
    Returns:
        APIRouter: Router exposing `POST /admin/price-history/jobs`.
    Assumptions:
        Admin token and Postgres DSN are provided through environment.
    Raises:
        ValueError: If admin token, DSN, or runtime config are invalid.
    Side Effects:
        Loads runtime config and creates a Postgres gateway (no connection is opened).
    """
    admin_token = environ.get(ADMIN_TOKEN_ENV_KEY, "").strip()
    if not admin_token:
        raise ValueError(f"{ADMIN_TOKEN_ENV_KEY} is required")

    effective_wiring = wiring if wiring is not None else PriceHistoryWiring(environ=environ)
    return build_ingestion_jobs_router(
        enqueue_use_case=effective_wiring.enqueue_use_case(),
        admin_token_dependency=build_admin_token_dependency(expected_token=admin_token),
    )


__all__ = ["ADMIN_TOKEN_ENV_KEY", "build_price_history_admin_router"]
