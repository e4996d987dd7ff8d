"""
tcgsync/bootstrap.py

Application root: builds every crawl and update component once and hands
them to the API process, the CLI and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests
from apscheduler.schedulers.background import BackgroundScheduler

from db.session import get_session_factory
from tcgsync.clock import Clock, SystemClock
from tcgsync.config import CrawlerSettings, get_crawler_settings
from tcgsync.crawling.cache import ResultCache
from tcgsync.crawling.http import ConnectivityProbe, PoliteHttpClient
from tcgsync.crawling.rate_limiter import RateLimiter
from tcgsync.crawling.robots import RobotsPolicyEngine
from tcgsync.grading.aggregator import MultiAuthorityAggregator
from tcgsync.logging_utils import log_event
from tcgsync.progress import ProgressStream
from tcgsync.scheduler.orchestrator import CrawlOrchestrator
from tcgsync.scheduler.service import AutoUpdateService
from tcgsync.scheduler.state import SettingsStore, UpdateHistory
from tcgsync.sources.config import load_source_definitions
from tcgsync.sources.fetchers import FetchContext, FetcherRegistry
from tcgsync.sources.registry import SourceRegistry
from tcgsync.storage.base import CardStore, KeyValueStore
from tcgsync.storage.memory import InMemoryCardStore, InMemoryKeyValueStore
from tcgsync.storage.sqlalchemy_storage import SQLAlchemyCardStore, SQLAlchemyKeyValueStore

logger = logging.getLogger(__name__)

GRADING_CACHE_NAMESPACE = "grading_cache"


@dataclass(frozen=True)
class Application:
    settings: CrawlerSettings
    http_session: requests.Session
    kv_store: KeyValueStore
    card_store: CardStore
    robots: RobotsPolicyEngine
    client: PoliteHttpClient
    cache: ResultCache
    aggregator: MultiAuthorityAggregator
    orchestrator: CrawlOrchestrator
    service: AutoUpdateService
    progress: ProgressStream

    def close(self) -> None:
        self.service.shutdown()
        self.http_session.close()


def _build_stores(settings: CrawlerSettings, clock: Clock) -> tuple[KeyValueStore, CardStore]:
    if settings.storage_backend == "memory":
        return InMemoryKeyValueStore(), InMemoryCardStore(clock=clock)

    factory = get_session_factory()
    return (
        SQLAlchemyKeyValueStore(session_factory=factory),
        SQLAlchemyCardStore(session_factory=factory, clock=clock),
    )


def build_application(
    settings: CrawlerSettings | None = None,
    *,
    kv_store: KeyValueStore | None = None,
    card_store: CardStore | None = None,
    http_session: requests.Session | None = None,
    scheduler: BackgroundScheduler | None = None,
    fetchers: FetcherRegistry | None = None,
    clock: Clock | None = None,
) -> Application:
    """
    Wire the component graph; any collaborator may be injected.
    """

    settings = settings or get_crawler_settings()
    clock = clock or SystemClock()
    if kv_store is None or card_store is None:
        default_kv, default_cards = _build_stores(settings, clock)
        kv_store = kv_store or default_kv
        card_store = card_store or default_cards

    http_session = http_session or requests.Session()
    progress = ProgressStream()

    robots = RobotsPolicyEngine(
        session=http_session,
        user_agent=settings.user_agent,
        timeout_seconds=settings.robots_timeout_seconds,
        cache_ttl_seconds=settings.robots_cache_ttl_seconds,
        allow_when_unreachable=settings.allow_when_robots_unreachable,
        clock=clock,
    )
    client = PoliteHttpClient(
        session=http_session,
        robots=robots,
        rate_limiter=RateLimiter(clock=clock),
        user_agent=settings.user_agent,
        timeout_seconds=settings.request_timeout_seconds,
        max_redirects=settings.max_redirects,
    )
    cache = ResultCache(
        store=kv_store,
        namespace=GRADING_CACHE_NAMESPACE,
        default_ttl_seconds=settings.grading_cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
        clock=clock,
    )
    aggregator = MultiAuthorityAggregator(
        client=client,
        cache=cache,
        cache_ttl_seconds=settings.grading_cache_ttl_seconds,
        progress=progress,
        clock=clock,
    )

    registry = SourceRegistry(load_source_definitions(config_path=settings.sources_config_path))
    settings_store = SettingsStore(store=kv_store, default_update_time=settings.default_update_time)
    orchestrator = CrawlOrchestrator(
        registry=registry,
        fetchers=fetchers or FetcherRegistry(),
        context=FetchContext(
            client=client,
            card_store=card_store,
            aggregator=aggregator,
            clock=clock,
            card_batch_limit=settings.card_batch_limit,
        ),
        kv_store=kv_store,
        history=UpdateHistory(store=kv_store, limit=settings.history_limit),
        settings_store=settings_store,
        probe=ConnectivityProbe(
            session=http_session,
            url=settings.connectivity_probe_url,
            timeout_seconds=settings.connectivity_timeout_seconds,
        ),
        cache=cache,
        robots=robots,
        progress=progress,
        clock=clock,
        retention_days=settings.retention_days,
    )
    service = AutoUpdateService(
        orchestrator=orchestrator,
        aggregator=aggregator,
        settings_store=settings_store,
        kv_store=kv_store,
        scheduler=scheduler,
        timezone=settings.scheduler_timezone,
    )

    log_event(
        logger,
        logging.INFO,
        "application_built",
        storage_backend=settings.storage_backend,
        sources=len(registry),
        user_agent=settings.user_agent,
    )
    return Application(
        settings=settings,
        http_session=http_session,
        kv_store=kv_store,
        card_store=card_store,
        robots=robots,
        client=client,
        cache=cache,
        aggregator=aggregator,
        orchestrator=orchestrator,
        service=service,
        progress=progress,
    )
