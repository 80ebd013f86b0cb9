"""
FastAPI application factory for the price-history admin API.
"""

from __future__ import annotations

import os
from typing import Mapping

from fastapi import FastAPI

from apps.api.common import register_api_error_handlers
from apps.api.wiring.modules import build_price_history_admin_router


def create_app(*, environ: Mapping[str, str] | None = None) -> FastAPI:
    """
    Build FastAPI app with the price-history admin module wired at startup.

    Docs: docs/architecture/price-history/price-history-ingestion-v1.md
    Related: apps.api.routes.ingestion_jobs,
      apps.api.wiring.modules.price_history,
      apps.api.common.errors

    Args:
        environ: Optional environment mapping override.
    Returns:
        FastAPI: Application instance with registered routers.
    Assumptions:
        Module wiring performs fail-fast validation before first request.
    Raises:
        FileNotFoundError: If runtime config path is missing.
        ValueError: If config, admin token, or DSN are invalid.
    Side Effects:
        Reads price-history YAML config.
    """
    effective_environ = os.environ if environ is None else environ

    app = FastAPI(
        title="Price History Admin API",
        version="1.0.0",
    )
    register_api_error_handlers(app=app)
    app.include_router(build_price_history_admin_router(environ=effective_environ))
    return app
