"""
Crawl-layer exceptions shared by the fetchers, aggregator and orchestrator.
"""

from __future__ import annotations


class CrawlError(Exception):
    """Base exception for data acquisition failures."""


class PolicyDeniedError(CrawlError):
    """Raised when robots.txt disallows the requested path."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NetworkError(CrawlError):
    """Raised on timeouts, DNS failures, refused connections and HTTP errors."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(CrawlError):
    """Raised when a response body does not have the expected shape."""


class ConnectivityError(CrawlError):
    """Raised when the pre-run connectivity probe fails."""


class ConcurrentRunError(CrawlError):
    """Raised internally when an update run is already in progress."""


class AggregationError(CrawlError):
    """Raised when every authority failed and partial results were not accepted."""

    def __init__(self, message: str, *, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or {}


class SourceNotFoundError(CrawlError):
    """Raised when a data source key is not registered."""


class CardNotFoundError(KeyError):
    """Raised by card stores when a card id no longer exists."""
