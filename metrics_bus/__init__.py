"""Client-side metrics ingestion and time-series aggregation bus."""

__version__ = "0.1.0"
