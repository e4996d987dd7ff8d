"""
robots.txt parsing, evaluation and cached fetching for crawl compliance.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import urlparse

import requests

from tcgsync.clock import Clock, SystemClock
from tcgsync.errors import NetworkError
from tcgsync.logging_utils import log_event

logger = logging.getLogger(__name__)

WILDCARD_AGENT = "*"
MIN_CRAWL_DELAY_SECONDS = 1.0
PERMISSIVE_ROBOTS_TXT = "User-agent: *\nAllow: /\nCrawl-delay: 1"
KNOWN_DIRECTIVES = frozenset({"user-agent", "disallow", "allow", "crawl-delay", "sitemap", "host"})

ROBOTS_REQUEST_HEADERS = {
    "Accept": "text/plain, text/html, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}


@dataclass(frozen=True)
class RobotsRuleSet:
    """
    Rules from one robots.txt that apply to one target user-agent.
    """

    user_agents: tuple[str, ...] = ()
    disallow: tuple[str, ...] = ()
    allow: tuple[str, ...] = ()
    crawl_delay_seconds: float = MIN_CRAWL_DELAY_SECONDS
    sitemaps: tuple[str, ...] = ()
    host: str | None = None
    has_rules: bool = False
    specific_rules: bool = False
    is_allowed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_agents": list(self.user_agents),
            "disallow": list(self.disallow),
            "allow": list(self.allow),
            "crawl_delay_seconds": self.crawl_delay_seconds,
            "sitemaps": list(self.sitemaps),
            "host": self.host,
            "has_rules": self.has_rules,
            "specific_rules": self.specific_rules,
            "is_allowed": self.is_allowed,
        }


@dataclass(frozen=True)
class RobotsValidation:
    """
    Lint report for a robots.txt body.
    """

    is_valid: bool
    line_count: int
    directive_count: int
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def normalize_path(path: str | None) -> str:
    """
    Collapse repeated leading slashes; an empty path is the root.
    """

    if not path:
        return "/"
    normalized = re.sub(r"^/+", "/", path)
    return normalized or "/"


def match_path(pattern: str, path: str) -> bool:
    """
    Return whether a robots.txt path pattern covers `path`.
    """

    pattern = normalize_path(pattern)
    path = normalize_path(path)

    if pattern == path:
        return True
    if pattern == "/":
        return path == "/"

    if pattern.endswith("/*"):
        base = pattern[:-2]
        if "*" not in base and not base.endswith("$"):
            return path == base or path.startswith(base + "/")

    if "*" in pattern or pattern.endswith("$"):
        anchored = pattern.endswith("$")
        body = pattern[:-1] if anchored else pattern
        regex = ".*".join(re.escape(part) for part in body.split("*"))
        if anchored:
            regex += "$"
        return re.match(regex, path) is not None

    return path.startswith(pattern)


def _split_directive(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    # Trailing comments need whitespace before `#` so paths like /a#b survive.
    line = re.split(r"\s+#", line, maxsplit=1)[0].strip()
    if ":" not in line:
        return None
    directive, value = line.split(":", 1)
    return directive.strip().lower(), value.strip()


def parse_robots_txt(content: str, target_agent: str) -> RobotsRuleSet:
    """
    Parse robots.txt text into the rule set applicable to `target_agent`.

    Every `User-agent` line switches the active section; rules that follow
    apply when that agent token is `*` or exactly `target_agent`.
    """

    user_agents: list[str] = []
    disallow: list[str] = []
    allow: list[str] = []
    sitemaps: list[str] = []
    host: str | None = None
    crawl_delay = MIN_CRAWL_DELAY_SECONDS
    wildcard_seen = False
    specific_seen = False

    section_applicable = False

    for raw_line in content.splitlines():
        parsed = _split_directive(raw_line)
        if parsed is None:
            continue
        directive, value = parsed

        if directive == "user-agent":
            section_applicable = value == WILDCARD_AGENT or value == target_agent
            if section_applicable:
                if value not in user_agents:
                    user_agents.append(value)
                if value == WILDCARD_AGENT:
                    wildcard_seen = True
                else:
                    specific_seen = True
        elif directive == "disallow":
            # An empty value normalizes to the root path.
            if section_applicable:
                disallow.append(normalize_path(value))
        elif directive == "allow":
            if section_applicable:
                allow.append(normalize_path(value))
        elif directive == "crawl-delay":
            if section_applicable:
                try:
                    delay = float(value)
                except ValueError:
                    continue
                if delay > 0:
                    crawl_delay = max(delay, MIN_CRAWL_DELAY_SECONDS)
        elif directive == "sitemap":
            if value and value not in sitemaps:
                sitemaps.append(value)
        elif directive == "host":
            if host is None and value:
                host = value

    rules = RobotsRuleSet(
        user_agents=tuple(user_agents),
        disallow=tuple(disallow),
        allow=tuple(allow),
        crawl_delay_seconds=crawl_delay,
        sitemaps=tuple(sitemaps),
        host=host,
        has_rules=wildcard_seen or specific_seen,
        specific_rules=specific_seen,
    )
    return replace(rules, is_allowed=evaluate(rules, target_agent, "/"))


def evaluate(rules: RobotsRuleSet, agent: str, path: str = "/") -> bool:
    """
    Return whether `agent` may fetch `path`; Allow rules win over Disallow.
    """

    if not rules.has_rules:
        return True
    if agent not in rules.user_agents and WILDCARD_AGENT not in rules.user_agents:
        return True

    if any(match_path(pattern, path) for pattern in rules.allow):
        return True
    if any(match_path(pattern, path) for pattern in rules.disallow):
        return False
    return True


def validate_robots_txt(content: str) -> RobotsValidation:
    """
    Lint robots.txt text: missing colons and bad crawl-delay values are
    errors, unknown directives are warnings.
    """

    lines = content.split("\n")
    errors: list[str] = []
    warnings: list[str] = []
    directive_count = 0

    for number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            errors.append(f"line {number}: missing ':' separator")
            continue

        directive, value = line.split(":", 1)
        directive = directive.strip().lower()
        value = value.strip()
        directive_count += 1

        if directive not in KNOWN_DIRECTIVES:
            warnings.append(f"line {number}: unknown directive '{directive}'")
        if directive == "crawl-delay":
            try:
                delay = float(value)
            except ValueError:
                delay = -1.0
            if delay < 0:
                errors.append(f"line {number}: invalid crawl-delay value '{value}'")

    return RobotsValidation(
        is_valid=not errors,
        line_count=len(lines),
        directive_count=directive_count,
        errors=errors,
        warnings=warnings,
    )


def summarize(rules: RobotsRuleSet) -> dict[str, Any]:
    return {
        "has_rules": rules.has_rules,
        "specific_rules": rules.specific_rules,
        "is_allowed": rules.is_allowed,
        "crawl_delay_seconds": rules.crawl_delay_seconds,
        "disallow_count": len(rules.disallow),
        "allow_count": len(rules.allow),
        "sitemap_count": len(rules.sitemaps),
        "has_host": rules.host is not None,
        "user_agents": list(rules.user_agents),
    }


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    scheme = parsed.scheme or "https"
    return f"{scheme}://{parsed.netloc}"


def build_robots_url(base_url: str) -> str:
    return f"{origin_of(base_url)}/robots.txt"


def path_of(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return path


class RobotsPolicyEngine:
    """
    Fetches robots.txt and caches parsed rule sets per origin and user-agent.
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        user_agent: str,
        timeout_seconds: float = 10.0,
        cache_ttl_seconds: float = 3600.0,
        allow_when_unreachable: bool = False,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._cache_ttl_seconds = cache_ttl_seconds
        self._allow_when_unreachable = allow_when_unreachable
        self._clock = clock or SystemClock()
        self._cache: dict[tuple[str, str], tuple[float, RobotsRuleSet]] = {}
        self._lock = threading.Lock()

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def fetch(self, robots_url: str, agent: str | None = None) -> str:
        """
        Return robots.txt text; a 404 means no restrictions.
        """

        try:
            response = self._session.get(
                robots_url,
                headers={"User-Agent": agent or self._user_agent, **ROBOTS_REQUEST_HEADERS},
                timeout=self._timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise NetworkError(
                f"robots.txt fetch failed url={robots_url} error={exc}",
                url=robots_url,
            ) from exc

        if response.status_code == 404:
            log_event(logger, logging.INFO, "robots_missing", robots_url=robots_url)
            return PERMISSIVE_ROBOTS_TXT
        if response.status_code >= 400:
            raise NetworkError(
                f"robots.txt fetch failed url={robots_url} status={response.status_code}",
                url=robots_url,
                status_code=response.status_code,
            )
        return response.text or ""

    def rules_for(self, base_url: str, agent: str | None = None) -> RobotsRuleSet:
        """
        Return cached rules for the origin of `base_url`, fetching when stale.
        """

        agent = agent or self._user_agent
        origin = origin_of(base_url)
        cache_key = (origin, agent)

        with self._lock:
            cached = self._cache.get(cache_key)
            if cached is not None:
                stored_at, rules = cached
                if self._clock.monotonic() - stored_at < self._cache_ttl_seconds:
                    return rules
                del self._cache[cache_key]

        robots_url = build_robots_url(base_url)
        try:
            content = self.fetch(robots_url, agent)
        except NetworkError as exc:
            if not self._allow_when_unreachable:
                log_event(
                    logger,
                    logging.WARNING,
                    "robots_fetch_failed",
                    origin=origin,
                    robots_url=robots_url,
                    error=str(exc),
                )
                raise
            log_event(
                logger,
                logging.WARNING,
                "robots_unreachable_fallback",
                origin=origin,
                robots_url=robots_url,
                error=str(exc),
            )
            return parse_robots_txt(PERMISSIVE_ROBOTS_TXT, agent)

        rules = parse_robots_txt(content, agent)
        with self._lock:
            self._cache[cache_key] = (self._clock.monotonic(), rules)
        log_event(
            logger,
            logging.INFO,
            "robots_loaded",
            origin=origin,
            robots_url=robots_url,
            crawl_delay_seconds=rules.crawl_delay_seconds,
            is_allowed=rules.is_allowed,
        )
        return rules

    def can_fetch(self, url: str, agent: str | None = None) -> bool:
        agent = agent or self._user_agent
        return evaluate(self.rules_for(url, agent), agent, path_of(url))

    def crawl_delay_seconds(self, url: str, agent: str | None = None) -> float:
        return self.rules_for(url, agent).crawl_delay_seconds

    def clear_expired(self) -> int:
        now = self._clock.monotonic()
        with self._lock:
            expired = [
                key
                for key, (stored_at, _) in self._cache.items()
                if now - stored_at >= self._cache_ttl_seconds
            ]
            for key in expired:
                del self._cache[key]
        return len(expired)
