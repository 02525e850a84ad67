from .fetcher import ExpositionFetcher, HttpExpositionFetcher

__all__ = ["ExpositionFetcher", "HttpExpositionFetcher"]
