from .price_quote import FetchedBatch, PriceQuote
from .watermark import Watermark

__all__ = [
    "FetchedBatch",
    "PriceQuote",
    "Watermark",
]
