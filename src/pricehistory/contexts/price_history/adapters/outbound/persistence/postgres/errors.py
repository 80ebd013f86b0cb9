from __future__ import annotations

from pricehistory.contexts.price_history.domain.errors import (
    PriceHistoryError,
    StoreUnavailableError,
    WriteConflictError,
)

# serialization_failure, deadlock_detected, unique_violation
_WRITE_CONFLICT_SQLSTATES: frozenset[str] = frozenset({"40001", "40P01", "23505"})


def is_driver_error(*, error: BaseException) -> bool:
    """
    Detect database driver errors by the `sqlstate` attribute psycopg errors carry.

    Args:
        error: Caught exception.
    Returns:
        bool: `True` for driver/storage errors, `False` for application and domain errors.
    Assumptions:
        Every `psycopg.Error` exposes `sqlstate` (possibly `None` for client-side errors).
    Raises:
        None.
    Side Effects:
        None.
    """
    if isinstance(error, PriceHistoryError):
        return False
    return hasattr(error, "sqlstate")


def translate_storage_error(
    *,
    error: BaseException,
    operation: str,
) -> StoreUnavailableError | WriteConflictError:
    """
    Classify a driver error into write conflict or store unavailability.

    Args:
        error: Caught driver exception.
        operation: Adapter operation name for the error message.
    Returns:
        StoreUnavailableError | WriteConflictError: Domain error to raise from `error`.
    Assumptions:
        Postgres SQLSTATE `40001`, `40P01` and `23505` are retryable collisions.
    Raises:
        None.
    Side Effects:
        None.
    """
    sql_state = getattr(error, "sqlstate", None)
    if sql_state in _WRITE_CONFLICT_SQLSTATES:
        return WriteConflictError(
            f"{operation} hit a write conflict (sqlstate={sql_state})",
            sqlstate=str(sql_state),
        )
    return StoreUnavailableError(f"{operation} failed: {error}")
