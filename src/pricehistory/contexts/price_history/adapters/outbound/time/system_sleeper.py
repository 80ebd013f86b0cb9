from __future__ import annotations

import time

from pricehistory.contexts.price_history.application.ports import Sleeper


class SystemSleeper(Sleeper):
    """
    Wall-clock sleeper for commit retry backoff.

    Related:
      - src/pricehistory/contexts/price_history/application/ports/sleeper.py
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
    """

    def sleep(self, *, seconds: float) -> None:
        """
        Sleep process thread for provided non-negative duration.

        Args:
            seconds: Sleep duration in seconds.
        Returns:
            None.
        Assumptions:
            Backoff durations are bounded by runtime config.
        Raises:
            ValueError: If duration is negative.
        Side Effects:
            Blocks current thread.
        """
        if seconds < 0:
            raise ValueError("SystemSleeper.seconds must be non-negative")
        if seconds == 0:
            return
        time.sleep(seconds)
