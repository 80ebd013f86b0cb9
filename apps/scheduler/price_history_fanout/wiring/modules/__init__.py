from .price_history_fanout import (
    PriceHistoryFanOutApp,
    PriceHistoryFanOutMetrics,
    build_price_history_fanout_app,
)

__all__ = [
    "PriceHistoryFanOutApp",
    "PriceHistoryFanOutMetrics",
    "build_price_history_fanout_app",
]
