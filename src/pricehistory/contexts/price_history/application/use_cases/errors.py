from __future__ import annotations

from typing import Any, Mapping, Sequence

from pricehistory.contexts.price_history.domain.errors import (
    CommitRetriesExhaustedError,
    IngestionJobPayloadError,
    PriceSourceError,
    StoreUnavailableError,
)
from pricehistory.platform.errors import PlatformError


def validation_error(
    *,
    message: str,
    errors: Sequence[Mapping[str, str]] | None = None,
) -> PlatformError:
    """
    Build canonical `validation_error` PlatformError with deterministic item ordering.

    Args:
        message: Human-readable validation failure message.
        errors: Optional validation items list.
    Returns:
        PlatformError: Canonical deterministic validation error.
    Assumptions:
        Validation item entries contain `path`, `code`, and `message`.
    Raises:
        None.
    Side Effects:
        None.
    """
    details: dict[str, Any] = {}
    if errors is not None:
        details["errors"] = _sorted_validation_items(items=errors)
    return PlatformError(code="validation_error", message=message, details=details)


def map_price_history_exception(*, error: Exception) -> PlatformError:
    """
    Map known price history exceptions to the canonical PlatformError contract.

    Args:
        error: Caught exception.
    Returns:
        PlatformError: Canonical mapped error.
    Assumptions:
        Unknown exceptions are mapped to generic `unexpected_error`.
    Raises:
        None.
    Side Effects:
        None.
    """
    if isinstance(error, PlatformError):
        return error

    if isinstance(error, IngestionJobPayloadError):
        raw_errors = error.details.get("errors")
        items = raw_errors if isinstance(raw_errors, list) and raw_errors else None
        return validation_error(message=str(error), errors=items)

    if isinstance(error, PriceSourceError):
        return PlatformError(
            code="price_source_unavailable",
            message="Price source request failed",
            details={
                "key": str(error.key),
                "start_day": error.start_day.isoformat(),
                "reason": str(error),
            },
        )

    if isinstance(error, CommitRetriesExhaustedError):
        return PlatformError(
            code="storage_conflict",
            message="Series commit kept conflicting with concurrent writers",
            details={"key": str(error.key), "attempts": error.attempts},
        )

    if isinstance(error, StoreUnavailableError):
        return PlatformError(
            code="storage_unavailable",
            message="Price history storage operation failed",
            details={"reason": str(error)},
        )

    if isinstance(error, ValueError):
        return validation_error(message=str(error))

    return PlatformError(
        code="unexpected_error",
        message="Unexpected price history operation error",
        details={"reason": str(error)},
    )


def _sorted_validation_items(*, items: Sequence[Mapping[str, str]]) -> list[dict[str, str]]:
    normalized_items: list[dict[str, str]] = []
    for item in items:
        normalized_items.append(
            {
                "path": str(item.get("path", "unknown")),
                "code": str(item.get("code", "validation_error")),
                "message": str(item.get("message", "Validation error")),
            }
        )
    return sorted(
        normalized_items,
        key=lambda row: (row["path"], row["code"], row["message"]),
    )
