"""
Data source exports.
"""

from tcgsync.sources.fetchers import (
    CardDataSourceFetcher,
    FetchContext,
    FetcherRegistry,
    GradingSourceFetcher,
    MarketDataSourceFetcher,
    PricingSourceFetcher,
    SourceFetcher,
)
from tcgsync.sources.models import CrawlSource, Priority, SourceStatus, SourceType
from tcgsync.sources.registry import SourceRegistry

__all__ = [
    "CardDataSourceFetcher",
    "CrawlSource",
    "FetchContext",
    "FetcherRegistry",
    "GradingSourceFetcher",
    "MarketDataSourceFetcher",
    "Priority",
    "PricingSourceFetcher",
    "SourceFetcher",
    "SourceRegistry",
    "SourceStatus",
    "SourceType",
]
