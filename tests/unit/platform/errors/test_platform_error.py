from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from pricehistory.platform.errors import PlatformError


def test_platform_error_payload_has_sorted_plain_details() -> None:
    error = PlatformError(
        code=" storage_conflict ",
        message="Series commit kept conflicting",
        details={"key": "0xaa", "attempts": 5, "day": date(2023, 6, 22), "price": Decimal("1.5")},
    )

    payload = error.to_payload()

    assert payload["error"]["code"] == "storage_conflict"
    assert list(payload["error"]["details"]) == ["attempts", "day", "key", "price"]
    assert payload["error"]["details"]["day"] == "2023-06-22"
    assert payload["error"]["details"]["price"] == "1.5"
    assert str(error) == "storage_conflict: Series commit kept conflicting"


def test_platform_error_without_details_renders_empty_mapping() -> None:
    payload = PlatformError(code="unauthorized", message="Admin token is missing").to_payload()

    assert payload == {
        "error": {"code": "unauthorized", "message": "Admin token is missing", "details": {}}
    }


def test_platform_error_rejects_blank_code_and_message() -> None:
    with pytest.raises(ValueError):
        PlatformError(code=" ", message="x")
    with pytest.raises(ValueError):
        PlatformError(code="x", message="")


def test_platform_error_rejects_non_mapping_details() -> None:
    with pytest.raises(TypeError):
        PlatformError(code="x", message="y", details=["a"])  # type: ignore[arg-type]


def test_platform_error_to_json_renders_one_deterministic_line() -> None:
    first = PlatformError(code="x", message="y", details={"b": {2, 1}, "a": ("é",)})
    second = PlatformError(code="x", message="y", details={"a": ["é"], "b": [1, 2]})

    assert first.to_json() == second.to_json()
    assert first.to_json() == (
        '{"error": {"code": "x", "message": "y", "details": {"a": ["é"], "b": [1, 2]}}}'
    )
