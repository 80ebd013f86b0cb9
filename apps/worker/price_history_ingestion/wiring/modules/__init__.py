from .price_history_ingestion import (
    PriceHistoryIngestionApp,
    PriceHistoryIngestionMetrics,
    build_price_history_ingestion_app,
)

__all__ = [
    "PriceHistoryIngestionApp",
    "PriceHistoryIngestionMetrics",
    "build_price_history_ingestion_app",
]
