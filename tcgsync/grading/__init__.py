"""
Grading authority exports.
"""

from tcgsync.grading.aggregator import MultiAuthorityAggregator, aggregate_stats, build_cache_key
from tcgsync.grading.authorities import AUTHORITY_PROFILES, Authority, AuthorityProfile, get_profile
from tcgsync.grading.parsers import RegexResponseParser, ResponseParser

__all__ = [
    "AUTHORITY_PROFILES",
    "Authority",
    "AuthorityProfile",
    "MultiAuthorityAggregator",
    "RegexResponseParser",
    "ResponseParser",
    "aggregate_stats",
    "build_cache_key",
    "get_profile",
]
