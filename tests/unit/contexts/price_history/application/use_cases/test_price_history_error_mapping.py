from __future__ import annotations

from datetime import date

from pricehistory.contexts.price_history.application.use_cases import (
    map_price_history_exception,
    validation_error,
)
from pricehistory.contexts.price_history.domain.errors import (
    CommitRetriesExhaustedError,
    IngestionJobPayloadError,
    PriceSourceError,
    StoreUnavailableError,
)
from pricehistory.platform.errors import PlatformError
from pricehistory.shared_kernel.primitives import SeriesKey


def test_validation_error_sorts_items_deterministically() -> None:
    error = validation_error(
        message="invalid",
        errors=[
            {"path": "requestedStart", "code": "required", "message": "Field required"},
            {"path": "key", "code": "string_type", "message": "Input should be a string"},
        ],
    )

    assert error.code == "validation_error"
    assert [item["path"] for item in error.details["errors"]] == ["key", "requestedStart"]


def test_known_errors_map_to_stable_codes() -> None:
    key = SeriesKey("0xaa")

    source = map_price_history_exception(
        error=PriceSourceError("timeout", key=key, start_day=date(2023, 6, 22))
    )
    conflict = map_price_history_exception(
        error=CommitRetriesExhaustedError(key=key, attempts=5)
    )
    storage = map_price_history_exception(error=StoreUnavailableError("db down"))
    payload = map_price_history_exception(
        error=IngestionJobPayloadError(
            "ingestion job payload is invalid",
            details={"errors": [{"path": "key", "code": "required", "message": "missing"}]},
        )
    )

    assert source.code == "price_source_unavailable"
    assert source.details == {"key": "0xaa", "reason": "timeout", "start_day": "2023-06-22"}
    assert conflict.code == "storage_conflict"
    assert conflict.details == {"attempts": 5, "key": "0xaa"}
    assert storage.code == "storage_unavailable"
    assert payload.code == "validation_error"
    assert payload.details["errors"][0]["path"] == "key"


def test_platform_errors_pass_through_and_unknown_errors_are_unexpected() -> None:
    original = PlatformError(code="unauthorized", message="nope")

    assert map_price_history_exception(error=original) is original
    assert map_price_history_exception(error=ValueError("bad")).code == "validation_error"
    assert map_price_history_exception(error=RuntimeError("boom")).code == "unexpected_error"
