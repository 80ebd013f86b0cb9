"""
Admin API error handlers for the PlatformError contract and deterministic 422 payloads.

Docs:
  - docs/architecture/price-history/price-history-ingestion-v1.md
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from pricehistory.contexts.price_history.application.use_cases import (
    map_price_history_exception,
    validation_error,
)
from pricehistory.contexts.price_history.domain.errors import PriceHistoryError
from pricehistory.platform.errors import PlatformError

_STATUS_BY_CODE: Mapping[str, int] = {
    "validation_error": 422,
    "unauthorized": 401,
    "not_found": 404,
    "price_source_unavailable": 502,
    "storage_conflict": 503,
    "storage_unavailable": 503,
    "unexpected_error": 500,
}


def register_api_error_handlers(*, app: FastAPI) -> None:
    """
    Register handlers for PlatformError, domain errors and FastAPI validation errors.

    Args:
        app: FastAPI application instance.
    Returns:
        None.
    Assumptions:
        Handlers are installed once during application startup.
    Raises:
        ValueError: If `app` dependency is missing.
    Side Effects:
        Mutates FastAPI exception-handler registry.
    """
    if app is None:  # type: ignore[truthy-bool]
        raise ValueError("register_api_error_handlers requires app")

    app.add_exception_handler(PlatformError, platform_error_handler)
    app.add_exception_handler(PriceHistoryError, price_history_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)


def platform_error_handler(_request: Request, error: Exception) -> JSONResponse:
    platform_error = cast(PlatformError, error)
    return JSONResponse(
        status_code=status_code_for_error_code(code=platform_error.code),
        content=platform_error.to_payload(),
    )


def price_history_error_handler(request: Request, error: Exception) -> JSONResponse:
    return platform_error_handler(request, map_price_history_exception(error=error))


def request_validation_error_handler(request: Request, error: Exception) -> JSONResponse:
    """
    Convert FastAPI RequestValidationError into canonical `validation_error` payload.

    Args:
        request: Starlette request object.
        error: Raised validation exception from FastAPI/Pydantic.
    Returns:
        JSONResponse: HTTP 422 payload with sorted `details.errors` list.
    Assumptions:
        Validation errors include `loc`, `type`, and `msg` keys.
    Raises:
        None.
    Side Effects:
        None.
    """
    validation = cast(RequestValidationError, error)
    platform_error = validation_error(
        message="Validation failed",
        errors=_validation_items(raw_errors=validation.errors()),
    )
    return platform_error_handler(request, platform_error)


def status_code_for_error_code(*, code: str) -> int:
    """Resolve HTTP status for a PlatformError code; unknown codes map to 500."""
    return _STATUS_BY_CODE.get(code, 500)


def _validation_items(*, raw_errors: Any) -> list[dict[str, str]]:
    if not isinstance(raw_errors, Sequence) or isinstance(raw_errors, (str, bytes, bytearray)):
        return []

    items: list[dict[str, str]] = []
    for raw_error in raw_errors:
        if not isinstance(raw_error, Mapping):
            items.append({"path": "unknown", "code": "validation_error", "message": str(raw_error)})
            continue
        items.append(
            {
                "path": _error_path(loc=raw_error.get("loc")),
                "code": _error_code(raw_type=raw_error.get("type")),
                "message": str(raw_error.get("msg", "Validation error")),
            }
        )
    return items


def _error_path(*, loc: Any) -> str:
    if isinstance(loc, Sequence) and not isinstance(loc, (str, bytes, bytearray)):
        parts = [str(part) for part in loc]
        if parts:
            return ".".join(parts)
    if loc is None:
        return "unknown"
    return str(loc)


def _error_code(*, raw_type: Any) -> str:
    if raw_type is None:
        return "validation_error"
    normalized = str(raw_type).strip().lower()
    if not normalized:
        return "validation_error"
    if normalized == "missing" or normalized.endswith(".missing"):
        return "required"
    return normalized


__all__ = [
    "platform_error_handler",
    "price_history_error_handler",
    "register_api_error_handlers",
    "request_validation_error_handler",
    "status_code_for_error_code",
]
