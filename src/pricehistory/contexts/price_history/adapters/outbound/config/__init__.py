from .runtime_config import (
    PriceHistoryBackoffConfig,
    PriceHistoryFanOutRuntimeConfig,
    PriceHistoryIngestionRuntimeConfig,
    PriceHistoryQueueRuntimeConfig,
    PriceHistoryRuntimeConfig,
    PriceHistorySourceConfig,
    load_price_history_runtime_config,
    resolve_price_history_config_path,
)

__all__ = [
    "PriceHistoryBackoffConfig",
    "PriceHistoryFanOutRuntimeConfig",
    "PriceHistoryIngestionRuntimeConfig",
    "PriceHistoryQueueRuntimeConfig",
    "PriceHistoryRuntimeConfig",
    "PriceHistorySourceConfig",
    "load_price_history_runtime_config",
    "resolve_price_history_config_path",
]
