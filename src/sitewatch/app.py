"""Sitewatch FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from zoneinfo import ZoneInfo

from fastapi import FastAPI

from sitewatch.config import Settings
from sitewatch.db import create_engine, create_session_factory
from sitewatch.db.models import Base
from sitewatch.routes import credentials_router, tasks_router
from sitewatch.services import (
    AnalysisExecutor,
    BrowserSnapshotter,
    CredentialStore,
    DesktopNotifier,
    LogNotifier,
    Notifier,
    SchedulerService,
    TaskStore,
    VisionAnalyzer,
)

logger = logging.getLogger(__name__)


def _build_notifier(settings: Settings) -> Notifier:
    if settings.notifier == "desktop":
        return DesktopNotifier(body_limit=settings.notification_body_limit)
    return LogNotifier(body_limit=settings.notification_body_limit)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    engine = create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        echo=settings.db_echo,
        command_timeout=settings.db_command_timeout,
    )
    session_factory = create_session_factory(engine)
    logger.info(f"Database connection configured: {settings.database_url.split('@')[-1]}")

    # Initialize core services
    store = TaskStore(session_factory)
    credentials = CredentialStore(
        Path(settings.credentials_path),
        default_keys={"openai": settings.openai_api_key or ""},
    )
    executor = AnalysisExecutor(
        store=store,
        snapshotter=BrowserSnapshotter(
            output_dir=Path(settings.snapshot_dir),
            width=settings.snapshot_width,
            height=settings.snapshot_height,
            settle_ms=settings.snapshot_settle_ms,
            timeout_ms=settings.snapshot_timeout_ms,
            executable_path=settings.browser_executable,
            headless=settings.headless,
        ),
        analyzer=VisionAnalyzer(
            openai_model=settings.openai_model,
            ollama_base_url=settings.ollama_base_url,
            ollama_model=settings.ollama_model,
            timeout=settings.analysis_timeout,
        ),
        notifier=_build_notifier(settings),
        credentials=credentials,
        provider=settings.vision_provider,
    )
    scheduler = SchedulerService(
        store,
        executor,
        poll_interval=settings.poll_interval_seconds,
        tz=ZoneInfo(settings.timezone) if settings.timezone else None,
        persist_retries=settings.persist_retries,
        persist_retry_delay=settings.persist_retry_delay,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Sitewatch starting up")

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

        await scheduler.start()

        yield

        await scheduler.stop()
        await engine.dispose()
        logger.info("Sitewatch shutting down")

    sitewatch_app = FastAPI(
        title="Sitewatch",
        description="Scheduled website checks against natural-language conditions",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store services in app.state for dependency injection
    sitewatch_app.state.credentials = credentials
    sitewatch_app.state.scheduler = scheduler
    sitewatch_app.state.settings = settings

    sitewatch_app.include_router(tasks_router)
    sitewatch_app.include_router(credentials_router)

    return sitewatch_app
