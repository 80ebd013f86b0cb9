"""Schema migration runner for price-history storage."""
