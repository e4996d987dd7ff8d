"""
Robots-aware, rate-limited outbound HTTP for every fetcher.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from tcgsync.crawling.rate_limiter import RateLimiter
from tcgsync.crawling.robots import RobotsPolicyEngine, origin_of
from tcgsync.errors import ConnectivityError, NetworkError, ParseError, PolicyDeniedError
from tcgsync.logging_utils import log_event

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass
class CrawlStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    robots_blocked: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "robots_blocked": self.robots_blocked,
        }


def build_url(url: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Return `url` with non-empty query parameters encoded onto it.
    """

    cleaned = {key: value for key, value in (params or {}).items() if value not in (None, "")}
    if not cleaned:
        return url
    prepared = requests.Request("GET", url, params=cleaned).prepare()
    return prepared.url or url


class PoliteHttpClient:
    """
    Runs robots check, crawl-delay wait and GET in that order.
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        robots: RobotsPolicyEngine,
        rate_limiter: RateLimiter,
        user_agent: str,
        timeout_seconds: float = 15.0,
        max_redirects: int = 5,
    ) -> None:
        self._session = session
        self._session.max_redirects = max_redirects
        self._robots = robots
        self._rate_limiter = rate_limiter
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._stats = CrawlStats()
        self._stats_lock = threading.Lock()

    @property
    def robots(self) -> RobotsPolicyEngine:
        return self._robots

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def stats(self) -> CrawlStats:
        with self._stats_lock:
            return CrawlStats(**self._stats.to_dict())

    def _count(self, field_name: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field_name, getattr(self._stats, field_name) + 1)

    def ensure_allowed(self, url: str) -> float:
        """
        Raise PolicyDeniedError when robots.txt disallows `url`; otherwise
        return the origin's crawl delay.
        """

        rules_allowed = self._robots.can_fetch(url, self._user_agent)
        if not rules_allowed:
            self._count("robots_blocked")
            log_event(
                logger,
                logging.WARNING,
                "request_blocked_by_robots",
                url=url,
                origin=origin_of(url),
                user_agent=self._user_agent,
            )
            raise PolicyDeniedError(f"Blocked by robots.txt url={url}", url=url)
        return self._robots.crawl_delay_seconds(url, self._user_agent)

    def get(
        self,
        url: str,
        *,
        target_key: str,
        params: Mapping[str, Any] | None = None,
        min_delay_seconds: float = 0.0,
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        """
        Fetch `url` politely; `target_key` owns the rate-limiter bucket.
        """

        full_url = build_url(url, params)
        robots_delay = self.ensure_allowed(full_url)
        self._rate_limiter.respect_delay(target_key, max(min_delay_seconds, robots_delay))

        request_headers = {"User-Agent": self._user_agent, **BROWSER_HEADERS, **(headers or {})}
        self._count("total_requests")
        try:
            response = self._session.get(
                full_url,
                headers=request_headers,
                timeout=self._timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            self._count("failed_requests")
            log_event(logger, logging.ERROR, "request_failed", url=full_url, target=target_key, error=str(exc))
            raise NetworkError(f"request failed url={full_url} error={exc}", url=full_url) from exc

        if response.status_code >= 400:
            self._count("failed_requests")
            log_event(
                logger,
                logging.ERROR,
                "request_failed",
                url=full_url,
                target=target_key,
                status_code=response.status_code,
            )
            raise NetworkError(
                f"request failed url={full_url} status={response.status_code}",
                url=full_url,
                status_code=response.status_code,
            )

        self._count("successful_requests")
        log_event(logger, logging.DEBUG, "request_succeeded", url=full_url, target=target_key)
        return response

    def get_json(self, url: str, *, target_key: str, **kwargs: Any) -> Any:
        response = self.get(url, target_key=target_key, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"response is not JSON url={url}") from exc


class ConnectivityProbe:
    """
    Lightweight HEAD request used before a run starts.
    """

    def __init__(self, *, session: requests.Session, url: str, timeout_seconds: float = 5.0) -> None:
        self._session = session
        self._url = url
        self._timeout_seconds = timeout_seconds

    def check(self) -> None:
        try:
            response = self._session.head(self._url, timeout=self._timeout_seconds, allow_redirects=True)
        except requests.RequestException as exc:
            raise ConnectivityError(f"connectivity probe failed url={self._url} error={exc}") from exc
        if not response.ok:
            raise ConnectivityError(
                f"connectivity probe failed url={self._url} status={response.status_code}"
            )
