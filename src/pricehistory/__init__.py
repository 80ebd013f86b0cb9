"""Token price history: gap-free daily price series ingestion."""
