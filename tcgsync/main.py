from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tcgsync.bootstrap import Application, build_application
from tcgsync.config import get_crawler_settings
from tcgsync.logging_utils import configure_logging


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import get_session_factory

    try:
        with get_session_factory()() as db:
            db.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 - registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch - %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


def create_app(application: Application | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    An injected `application` root is used as-is; otherwise one is built
    from environment settings at start-up.
    """

    configure_logging()

    @asynccontextmanager
    async def _lifespan(api: FastAPI) -> AsyncIterator[None]:
        """Build the component graph, start the scheduler on boot; shut it down on exit."""
        log = logging.getLogger(__name__)
        root: Application | None = getattr(api.state, "tcgsync", None)
        if root is None:
            if get_crawler_settings().storage_backend == "sqlalchemy":
                _check_db()
                log.info("Database connectivity confirmed")
                _check_schema()
                log.info("Database schema validated")
            root = build_application()
            api.state.tcgsync = root

        root.service.start()
        log.info("Auto-update service started")
        try:
            yield
        finally:
            root.close()
            log.info("Auto-update service shut down")

    api = FastAPI(
        title="TCG Sync API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    if application is not None:
        api.state.tcgsync = application

    from tcgsync.api.routers import auto_update_router, grading_router

    api.include_router(auto_update_router)
    api.include_router(grading_router)

    @api.get("/health")
    def healthcheck() -> dict[str, object]:
        root: Application | None = getattr(api.state, "tcgsync", None)
        return {
            "status": "ok",
            "initialized": bool(root and root.service.is_initialized),
            "scheduler_running": bool(root and root.service.scheduler.running),
        }

    return api


app = create_app()
