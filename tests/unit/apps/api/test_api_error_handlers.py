from __future__ import annotations

from datetime import date

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, ConfigDict

from apps.api.common import register_api_error_handlers, status_code_for_error_code
from pricehistory.contexts.price_history.domain.errors import PriceSourceError
from pricehistory.platform.errors import PlatformError
from pricehistory.shared_kernel.primitives import SeriesKey


class _ValidationPayload(BaseModel):
    """
    Validation payload model with deliberately non-lexicographic field order for sorting test.
    """

    model_config = ConfigDict(extra="forbid")

    b: int
    a: int


def test_platform_error_handler_maps_error_to_http_status_and_payload() -> None:
    """
    Verify PlatformError is converted into deterministic API payload and status mapping.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Storage conflict code must be mapped to HTTP 503 by shared API error handler.
    Raises:
        AssertionError: If payload shape or HTTP status mapping is broken.
    Side Effects:
        None.
    """
    app = FastAPI()
    register_api_error_handlers(app=app)

    @app.get("/boom")
    def boom() -> None:
        raise PlatformError(
            code="storage_conflict",
            message="Series commit kept conflicting",
            details={"key": "0xaa"},
        )

    client = TestClient(app)
    response = client.get("/boom")

    assert response.status_code == 503
    assert response.json() == {
        "error": {
            "code": "storage_conflict",
            "message": "Series commit kept conflicting",
            "details": {"key": "0xaa"},
        }
    }


def test_domain_errors_escaping_routes_are_mapped() -> None:
    app = FastAPI()
    register_api_error_handlers(app=app)

    @app.get("/source")
    def source() -> None:
        raise PriceSourceError("HTTP 503", key=SeriesKey("0xaa"), start_day=date(2023, 6, 22))

    response = TestClient(app).get("/source")

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "price_source_unavailable"


def test_request_validation_error_handler_returns_sorted_validation_errors() -> None:
    """
    Verify validation handler returns deterministic `validation_error` payload with sorted errors.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Errors are sorted lexicographically by path, then code, then message.
    Raises:
        AssertionError: If response payload differs from deterministic contract.
    Side Effects:
        None.
    """
    app = FastAPI()
    register_api_error_handlers(app=app)

    @app.post("/validate")
    def validate(payload: _ValidationPayload) -> dict[str, int]:
        return {"a": payload.a, "b": payload.b}

    client = TestClient(app)
    response = client.post("/validate", json={"z": 1})

    assert response.status_code == 422
    assert response.json() == {
        "error": {
            "code": "validation_error",
            "message": "Validation failed",
            "details": {
                "errors": [
                    {
                        "path": "body.a",
                        "code": "required",
                        "message": "Field required",
                    },
                    {
                        "path": "body.b",
                        "code": "required",
                        "message": "Field required",
                    },
                    {
                        "path": "body.z",
                        "code": "extra_forbidden",
                        "message": "Extra inputs are not permitted",
                    },
                ]
            },
        }
    }


def test_unknown_error_codes_map_to_500() -> None:
    assert status_code_for_error_code(code="unauthorized") == 401
    assert status_code_for_error_code(code="something_new") == 500
