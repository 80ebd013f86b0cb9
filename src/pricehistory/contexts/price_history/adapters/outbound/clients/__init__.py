from .rest_price_source import RestPriceSource

__all__ = ["RestPriceSource"]
