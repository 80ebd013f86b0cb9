"""
Admin API routes for manually triggering price-history ingestion jobs.

Docs:
  - docs/architecture/price-history/price-history-ingestion-v1.md
"""

from __future__ import annotations

import hmac
import logging
from typing import Callable

from fastapi import APIRouter, Depends, Header, status

from apps.api.dto import IngestionJobEnqueuedResponse, IngestionJobPayload
from pricehistory.contexts.price_history.application.use_cases import (
    EnqueueIngestionJobUseCase,
    map_price_history_exception,
)
from pricehistory.platform.errors import PlatformError

log = logging.getLogger(__name__)

AdminTokenDependency = Callable[..., None]


def build_admin_token_dependency(*, expected_token: str) -> AdminTokenDependency:
    """
    Build dependency that authorizes requests by `X-Admin-Token` header.

    Args:
        expected_token: Configured admin token secret.
    Returns:
        AdminTokenDependency: FastAPI dependency raising `unauthorized` PlatformError.
    Assumptions:
        Token comparison is constant-time.
    Raises:
        ValueError: If expected token is blank.
    Side Effects:
        None.
    """
    normalized_expected = expected_token.strip()
    if not normalized_expected:
        raise ValueError("build_admin_token_dependency requires non-empty expected_token")
    expected_bytes = normalized_expected.encode("utf-8")

    def require_admin_token(
        x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
    ) -> None:
        provided = (x_admin_token or "").strip().encode("utf-8")
        if not provided or not hmac.compare_digest(provided, expected_bytes):
            raise PlatformError(code="unauthorized", message="Admin token is missing or invalid")

    return require_admin_token


def build_ingestion_jobs_router(
    *,
    enqueue_use_case: EnqueueIngestionJobUseCase,
    admin_token_dependency: AdminTokenDependency,
) -> APIRouter:
    """
    Build admin router exposing `POST /admin/price-history/jobs`.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/api/dto/ingestion_jobs.py
      - apps/api/wiring/modules/price_history.py
      - src/pricehistory/contexts/price_history/application/use_cases/enqueue_ingestion_job.py

    Args:
        enqueue_use_case: Use-case putting jobs on the shared queue.
        admin_token_dependency: Authorization dependency.
    Returns:
        APIRouter: Router with the admin trigger endpoint.
    Assumptions:
        Route layer maps transport only; no de-duplication of jobs.
    Raises:
        ValueError: If one of required dependencies is missing.
    Side Effects:
        None.
    """
    if enqueue_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_ingestion_jobs_router requires enqueue_use_case")
    if admin_token_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_ingestion_jobs_router requires admin_token_dependency")

    router = APIRouter(tags=["price-history"])

    @router.post(
        "/admin/price-history/jobs",
        status_code=status.HTTP_202_ACCEPTED,
        response_model=IngestionJobEnqueuedResponse,
        dependencies=[Depends(admin_token_dependency)],
    )
    def post_ingestion_job(request: IngestionJobPayload) -> IngestionJobEnqueuedResponse:
        """
        Enqueue one ingestion job from the admin request body.

        Args:
            request: Validated job payload.
        Returns:
            IngestionJobEnqueuedResponse: Identifier of the queued job.
        Assumptions:
            Duplicate jobs are accepted; the commit engine makes them harmless.
        Raises:
            PlatformError: `validation_error` for an unusable key, storage codes on queue errors.
        Side Effects:
            Inserts one queue row.
        """
        try:
            job = request.to_domain()
            job_id = enqueue_use_case.execute(job=job)
        except Exception as error:  # noqa: BLE001
            platform_error = map_price_history_exception(error=error)
            if platform_error.code == "unexpected_error":
                log.exception("event=admin_enqueue_failed")
            raise platform_error from error
        return IngestionJobEnqueuedResponse(job_id=job_id)

    return router


__all__ = [
    "AdminTokenDependency",
    "build_admin_token_dependency",
    "build_ingestion_jobs_router",
]
