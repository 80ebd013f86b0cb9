from .commit_engine import (
    DEFAULT_COMMIT_MAX_ATTEMPTS,
    DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS,
    IdempotentCommitEngine,
)
from .fanout_planner import PriceHistoryFanOutPlanner
from .watermark_resolver import WatermarkResolver, resolve_watermark

__all__ = [
    "DEFAULT_COMMIT_MAX_ATTEMPTS",
    "DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS",
    "IdempotentCommitEngine",
    "PriceHistoryFanOutPlanner",
    "WatermarkResolver",
    "resolve_watermark",
]
