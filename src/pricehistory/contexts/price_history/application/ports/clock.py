from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """
    Source of the current UTC time for the application layer.

    Contract:
    - now() -> timezone-aware datetime in UTC
    """

    def now(self) -> datetime:
        ...
