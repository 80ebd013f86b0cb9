"""
Shared Kernel primitives.

Re-exports the minimal set of primitives so other modules can import them from one place:

    from pricehistory.shared_kernel.primitives import SeriesKey, to_series_day
"""

from .series_day import next_series_day, to_series_day
from .series_key import SERIES_KEY_MAX_LENGTH, SeriesKey

__all__ = [
    "SERIES_KEY_MAX_LENGTH",
    "SeriesKey",
    "next_series_day",
    "to_series_day",
]
