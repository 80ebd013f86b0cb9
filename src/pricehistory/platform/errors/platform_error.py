from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

_JSON_SCALARS = (str, int, float, bool)


@dataclass(frozen=True, slots=True)
class PlatformError(Exception):
    """
    Error contract shared by the admin API and the CLI.

    Payload shape is `{"error": {"code", "message", "details"}}`. Details are frozen at
    construction into JSON-ready data with sorted keys, so equal errors always render the
    same bytes.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - apps/api/common/errors.py
      - src/pricehistory/contexts/price_history/application/use_cases/errors.py
      - apps/cli/commands/ingest.py
    """

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        code = self.code.strip()
        message = self.message.strip()
        if not code:
            raise ValueError("PlatformError.code must be non-empty")
        if not message:
            raise ValueError("PlatformError.message must be non-empty")
        if self.details is not None and not isinstance(self.details, Mapping):
            raise TypeError("PlatformError.details must be a mapping when provided")

        object.__setattr__(self, "code", code)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "details", _json_ready(self.details or {}))

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": dict(self.details or {}),
            }
        }

    def to_json(self) -> str:
        """Render payload as one JSON line, non-ASCII kept as is."""
        return json.dumps(self.to_payload(), ensure_ascii=False)


def _json_ready(value: Any) -> Any:
    """
    Convert details into JSON-ready data.

    Mappings get string keys in sorted order, sets become sorted lists, dates use ISO
    format, and any other non-JSON value (Decimal, UUID, SeriesKey) is rendered with `str`.
    """
    if value is None or isinstance(value, _JSON_SCALARS):
        return value
    if isinstance(value, Mapping):
        return {str(key): _json_ready(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (set, frozenset)):
        return sorted((_json_ready(item) for item in value), key=str)
    if isinstance(value, (list, tuple)):
        return [_json_ready(item) for item in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
