"""Portfolio analysis domain package."""
