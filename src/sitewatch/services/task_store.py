"""Durable watch task store with atomic merge updates."""

import asyncio
import logging
from dataclasses import fields as dataclass_fields
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitewatch.db.engine import get_session
from sitewatch.db.models import WatchTaskModel
from sitewatch.db.repositories.tasks import WatchTaskRepository
from sitewatch.errors import TaskStoreError, TaskValidationError
from sitewatch.models.watch_task import DayOfWeek, Frequency, RunResult, WatchTask
from sitewatch.prompts import build_analysis_prompt
from sitewatch.services.schedule import parse_scheduled_time

logger = logging.getLogger(__name__)

# Fields a merge update may change; task_id and created_at are immutable
MUTABLE_FIELDS = frozenset(
    f.name for f in dataclass_fields(WatchTask) if f.name not in ("task_id", "created_at")
)

_RESULT_FIELDS = ("last_result", "last_matched_criteria", "last_test_result")


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate_model(model: WatchTaskModel) -> None:
    """Reject a record that lost any field required to run it."""
    missing = [
        name
        for name in ("task_id", "website_url", "notification_criteria", "analysis_prompt")
        if not (getattr(model, name) or "").strip()
    ]
    if missing:
        raise TaskValidationError(
            f"Task {model.task_id} is missing required fields: {', '.join(missing)}"
        )
    if model.frequency is None:
        raise TaskValidationError(f"Task {model.task_id} has no frequency")
    try:
        parse_scheduled_time(model.scheduled_time)
    except ValueError as e:
        raise TaskValidationError(str(e)) from None
    if model.frequency == Frequency.WEEKLY and model.day_of_week is None:
        raise TaskValidationError(f"Task {model.task_id} is weekly but has no day_of_week")


def _to_column(name: str, value: Any) -> Any:
    if name == "frequency" and value is not None:
        return Frequency(value)
    if name == "day_of_week" and value is not None:
        return DayOfWeek(value)
    if name == "last_test_result" and isinstance(value, RunResult):
        return value.to_dict()
    if isinstance(value, datetime):
        # SQLite drops the offset, so everything is stored as UTC
        return value.astimezone(timezone.utc)
    return value


class TaskStore:
    """Single source of truth for watch task state.

    Readers get fresh copies on every call. All writes go through one
    transaction per call, serialized by a store-wide lock, so a merge
    always applies to the record as currently stored.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    def _model_to_dataclass(self, model: WatchTaskModel) -> WatchTask:
        """Convert a database model to a dataclass."""
        return WatchTask(
            task_id=model.task_id,
            website_url=model.website_url,
            notification_criteria=model.notification_criteria,
            analysis_prompt=model.analysis_prompt,
            frequency=Frequency(model.frequency),
            scheduled_time=model.scheduled_time,
            day_of_week=DayOfWeek(model.day_of_week) if model.day_of_week else None,
            is_running=model.is_running,
            created_at=_as_utc(model.created_at) or datetime.now(timezone.utc),
            last_run=_as_utc(model.last_run),
            next_scheduled_run=_as_utc(model.next_scheduled_run),
            last_result=model.last_result,
            last_matched_criteria=model.last_matched_criteria,
            last_test_result=(
                RunResult.from_dict(model.last_test_result)
                if model.last_test_result
                else None
            ),
        )

    async def get_all(self) -> list[WatchTask]:
        """Get all tasks."""
        try:
            async with self._session_factory() as session:
                models = await WatchTaskRepository(session).list_all()
                return [self._model_to_dataclass(m) for m in models]
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to load tasks: {e}") from e

    async def get(self, task_id: str) -> WatchTask | None:
        """Get a task by ID."""
        try:
            async with self._session_factory() as session:
                model = await WatchTaskRepository(session).get(task_id)
                return self._model_to_dataclass(model) if model else None
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to load task {task_id}: {e}") from e

    async def add(self, task: WatchTask) -> WatchTask:
        """Persist a new task.

        Raises:
            TaskValidationError: If the task is missing required fields.
            TaskStoreError: If the write fails.
        """
        values = {
            name: _to_column(name, getattr(task, name))
            for name in MUTABLE_FIELDS | {"task_id", "created_at"}
        }
        async with self._write_lock:
            try:
                async with get_session(self._session_factory) as session:
                    model = await WatchTaskRepository(session).create(**values)
                    # Raising here rolls the insert back
                    _validate_model(model)
                    created = self._model_to_dataclass(model)
            except SQLAlchemyError as e:
                raise TaskStoreError(f"Failed to add task {task.task_id}: {e}") from e

        logger.info(f"Stored task {created.task_id} ({created.website_url})")
        return created

    async def merge_update(
        self,
        task_id: str,
        updates: dict[str, Any],
        require_running: bool = False,
    ) -> WatchTask | None:
        """Merge ``updates`` onto the stored task in a single transaction.

        Changing ``notification_criteria`` regenerates the analysis prompt and
        clears the previous result, since it no longer answers the active
        condition.

        Args:
            task_id: The task to update
            updates: Field name -> new value (None clears optional fields)
            require_running: Skip the write if the stored task is stopped

        Returns:
            The updated task, or None if it does not exist (or is stopped
            when ``require_running`` is set)

        Raises:
            TaskValidationError: If the merged record would be invalid.
            TaskStoreError: If the write fails.
        """
        unknown = set(updates) - MUTABLE_FIELDS
        if unknown:
            raise TaskValidationError(
                f"Cannot update fields on task {task_id}: {', '.join(sorted(unknown))}"
            )

        async with self._write_lock:
            try:
                async with get_session(self._session_factory) as session:
                    repo = WatchTaskRepository(session)
                    model = await repo.get(task_id, for_update=True)
                    if model is None:
                        return None
                    if require_running and not model.is_running:
                        return None

                    values = dict(updates)
                    criteria = values.get("notification_criteria")
                    if criteria is not None and criteria != model.notification_criteria:
                        invalidated: dict[str, Any] = {
                            name: None for name in _RESULT_FIELDS
                        }
                        invalidated["analysis_prompt"] = build_analysis_prompt(criteria)
                        values = {**invalidated, **values}

                    for name, value in values.items():
                        setattr(model, name, _to_column(name, value))
                    # Raising here rolls the whole transaction back
                    _validate_model(model)
                    model = await repo.save(model)
                    return self._model_to_dataclass(model)
            except SQLAlchemyError as e:
                raise TaskStoreError(f"Failed to update task {task_id}: {e}") from e

    async def delete(self, task_id: str) -> bool:
        """Delete a task. Returns False if it did not exist."""
        async with self._write_lock:
            try:
                async with get_session(self._session_factory) as session:
                    deleted = await WatchTaskRepository(session).delete(task_id)
            except SQLAlchemyError as e:
                raise TaskStoreError(f"Failed to delete task {task_id}: {e}") from e
        if deleted:
            logger.info(f"Deleted task {task_id}")
        return deleted
