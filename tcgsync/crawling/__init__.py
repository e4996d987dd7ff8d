"""
Crawl compliance exports: robots policy, rate limiting, caching and HTTP.
"""

from tcgsync.crawling.cache import CacheEntry, ResultCache
from tcgsync.crawling.http import ConnectivityProbe, CrawlStats, PoliteHttpClient, build_url
from tcgsync.crawling.rate_limiter import RateLimiter
from tcgsync.crawling.robots import (
    RobotsPolicyEngine,
    RobotsRuleSet,
    RobotsValidation,
    build_robots_url,
    evaluate,
    match_path,
    parse_robots_txt,
    summarize,
    validate_robots_txt,
)

__all__ = [
    "CacheEntry",
    "ConnectivityProbe",
    "CrawlStats",
    "PoliteHttpClient",
    "RateLimiter",
    "ResultCache",
    "RobotsPolicyEngine",
    "RobotsRuleSet",
    "RobotsValidation",
    "build_robots_url",
    "build_url",
    "evaluate",
    "match_path",
    "parse_robots_txt",
    "summarize",
    "validate_robots_txt",
]
