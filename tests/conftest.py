"""Pytest configuration and fixtures for sitewatch tests."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sitewatch.db.models import Base
from sitewatch.models.watch_task import DayOfWeek, Frequency, WatchTask
from sitewatch.prompts import build_analysis_prompt
from sitewatch.services import AnalysisExecutor, CredentialStore, TaskStore
from sitewatch.services.snapshot import Snapshot
from sitewatch.services.vision import AnalysisResult

VALID_KEY = "sk-" + "a" * 40

# Monday
BASE_TIME = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for datetime.now(timezone.utc)."""

    def __init__(self, now: datetime = BASE_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite database engine for testing."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session_factory(db_engine):
    """Create a session factory for testing."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(session_factory):
    return TaskStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_task():
    """Build an unsaved WatchTask with sensible defaults."""

    def _make(**overrides) -> WatchTask:
        criteria = overrides.pop("notification_criteria", "the price is below $50")
        values = {
            "task_id": str(uuid.uuid4()),
            "website_url": "example.com/product",
            "notification_criteria": criteria,
            "analysis_prompt": build_analysis_prompt(criteria),
            "frequency": Frequency.DAILY,
            "scheduled_time": "09:00",
            "day_of_week": None,
            "is_running": True,
            "created_at": BASE_TIME,
        }
        values.update(overrides)
        if values["frequency"] == Frequency.WEEKLY and values["day_of_week"] is None:
            values["day_of_week"] = DayOfWeek.MON
        return WatchTask(**values)

    return _make


@pytest.fixture
def credentials(tmp_path):
    return CredentialStore(tmp_path / "credentials.json", default_keys={"openai": VALID_KEY})


@pytest.fixture
def snapshotter(tmp_path):
    """Snapshotter returning a tiny fake PNG."""
    mock = MagicMock()
    mock.capture = AsyncMock(
        side_effect=lambda url, task_id=None: Snapshot(
            url=url,
            image=b"\x89PNG fake",
            captured_at=BASE_TIME,
            path=(tmp_path / "snap.png") if task_id else None,
        )
    )
    return mock


@pytest.fixture
def analyzer():
    mock = MagicMock()
    mock.analyze = AsyncMock(
        return_value=AnalysisResult(analysis="Price is $45", matched=True)
    )
    return mock


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.notify = AsyncMock()
    return mock


@pytest.fixture
def executor(store, snapshotter, analyzer, notifier, credentials, clock):
    return AnalysisExecutor(
        store=store,
        snapshotter=snapshotter,
        analyzer=analyzer,
        notifier=notifier,
        credentials=credentials,
        provider="openai",
        clock=clock,
    )
