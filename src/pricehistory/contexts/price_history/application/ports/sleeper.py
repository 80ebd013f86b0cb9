from __future__ import annotations

from typing import Protocol


class Sleeper(Protocol):
    """
    Sleep abstraction for commit retry backoff.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
      - src/pricehistory/contexts/price_history/adapters/outbound/time/system_sleeper.py
    """

    def sleep(self, *, seconds: float) -> None:
        """
        Sleep current thread for configured backoff duration.

        Args:
            seconds: Non-negative sleep duration in seconds.
        Returns:
            None.
        Assumptions:
            Commit engine uses bounded retries with linear backoff.
        Raises:
            ValueError: If implementation rejects invalid duration values.
        Side Effects:
            Blocks current execution context for requested duration.
        """
        ...
