"""Scheduler service that polls the task store and runs due watch tasks."""

import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any

from sitewatch.errors import TaskStoreError, TaskValidationError
from sitewatch.models.watch_task import DayOfWeek, Frequency, RunResult, WatchTask
from sitewatch.prompts import build_analysis_prompt
from sitewatch.services.executor import AnalysisExecutor, RunOutcome
from sitewatch.services.schedule import is_missed, next_run, parse_scheduled_time
from sitewatch.services.task_store import TaskStore
from sitewatch.utils import validate_url

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {"website_url", "notification_criteria", "frequency", "scheduled_time", "day_of_week"}
)
_SCHEDULE_FIELDS = frozenset({"frequency", "scheduled_time", "day_of_week"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TickReport:
    """What one pass over the task store did."""

    executed: list[str] = field(default_factory=list)
    scheduled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def _validate_definition(task: WatchTask) -> None:
    message = validate_url(task.website_url)
    if message:
        raise TaskValidationError(message)
    if not task.notification_criteria.strip():
        raise TaskValidationError("Notification criteria is required")
    try:
        parse_scheduled_time(task.scheduled_time)
    except ValueError as e:
        raise TaskValidationError(str(e)) from None
    if task.frequency == Frequency.WEEKLY and task.day_of_week is None:
        raise TaskValidationError("Weekly tasks need a day_of_week")


class SchedulerService:
    """Runs watch tasks when they are due.

    One loop wakes every ``poll_interval`` seconds and calls ``run_tick``,
    which re-reads every task from the store before deciding anything. The
    same reconciliation runs once at startup so that runs missed while the
    process was down are caught up immediately.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: AnalysisExecutor,
        poll_interval: float = 60.0,
        tz: tzinfo | None = None,
        persist_retries: int = 3,
        persist_retry_delay: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._executor = executor
        self._poll_interval = poll_interval
        self._tz = tz
        self._persist_retries = max(1, persist_retries)
        self._persist_retry_delay = persist_retry_delay
        self._clock = clock
        self._running = False
        self._loop_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Reconcile once, then start the polling loop."""
        try:
            await self.run_tick()
        except Exception as e:
            logger.exception(f"Startup reconciliation failed: {e}")
        self._running = True
        self._loop_task = asyncio.create_task(self._scheduler_loop())
        logger.info(f"Scheduler service started (interval={self._poll_interval}s)")

    async def stop(self) -> None:
        """Stop the polling loop."""
        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        logger.info("Scheduler service stopped")

    async def _scheduler_loop(self) -> None:
        """Main scheduler loop - checks for due tasks."""
        while self._running:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.run_tick()
            except Exception as e:
                logger.exception(f"Scheduler error: {e}")

    async def run_tick(self) -> TickReport:
        """Check every running task once and run those that are due or missed.

        Tasks are handled one at a time. A failure in one task is recorded in
        the report and does not stop the others.

        Raises:
            TaskStoreError: If the task list cannot be read.
        """
        now = self._clock()
        report = TickReport()
        tasks = await self._store.get_all()
        running = [t for t in tasks if t.is_running]
        logger.debug(f"Tick at {now.isoformat()}: {len(running)} running tasks")

        for task in running:
            try:
                await self._process(task, now, report)
            except Exception as e:
                logger.exception(f"Failed to process task {task.task_id}: {e}")
                report.failed[task.task_id] = str(e)

        if report.executed or report.failed:
            logger.info(
                f"Tick finished: executed={len(report.executed)} "
                f"scheduled={len(report.scheduled)} failed={len(report.failed)}"
            )
        return report

    async def _process(self, listed: WatchTask, now: datetime, report: TickReport) -> None:
        if self._executor.is_busy(listed.task_id):
            report.skipped.append(listed.task_id)
            return

        # Earlier tasks in this tick may have taken a while; act on current state
        task = await self._store.get(listed.task_id)
        if task is None or not task.is_running:
            return

        if task.next_scheduled_run is None:
            if not is_missed(task, now):
                updated = await self._reschedule(task.task_id)
                if updated is not None:
                    logger.info(f"Task {task.task_id} next run at {updated.next_scheduled_run}")
                    report.scheduled.append(task.task_id)
                return
            reason = "missed"
        elif task.next_scheduled_run <= now:
            reason = "due"
        elif is_missed(task, now):
            reason = "missed"
        else:
            return

        logger.info(f"Task {task.task_id} is {reason}, running now")
        await self._run_and_reschedule(task, report)

    async def _run_and_reschedule(self, task: WatchTask, report: TickReport) -> None:
        error: Exception | None = None
        try:
            outcome = await self._executor.execute(task)
        except Exception as e:
            # The executor has already recorded the failure on the task
            logger.warning(f"Task {task.task_id} run failed: {e}")
            error = e
        else:
            if outcome is None:
                report.skipped.append(task.task_id)
                return

        await self._reschedule(task.task_id)
        if error is not None:
            report.failed[task.task_id] = str(error)
        else:
            report.executed.append(task.task_id)

    async def _reschedule(self, task_id: str) -> WatchTask | None:
        """Store a fresh next run computed from the current time.

        Only applies while the task is still running, so a task stopped
        during its execution stays stopped. Store failures are retried and
        then raised.
        """
        for attempt in range(1, self._persist_retries + 1):
            try:
                current = await self._store.get(task_id)
                if current is None or not current.is_running:
                    return None
                next_at = next_run(current, self._clock(), self._tz)
                return await self._store.merge_update(
                    task_id, {"next_scheduled_run": next_at}, require_running=True
                )
            except TaskValidationError:
                raise
            except TaskStoreError as e:
                if attempt == self._persist_retries:
                    raise
                logger.warning(
                    f"Failed to store next run for task {task_id} "
                    f"(attempt {attempt}/{self._persist_retries}): {e}"
                )
                await asyncio.sleep(self._persist_retry_delay)
        return None

    async def create_task(
        self,
        website_url: str,
        notification_criteria: str,
        frequency: Frequency | str,
        scheduled_time: str,
        day_of_week: DayOfWeek | str | None = None,
    ) -> WatchTask:
        """Create a running watch task with its first run scheduled."""
        task = WatchTask(
            task_id=str(uuid.uuid4()),
            website_url=website_url.strip(),
            notification_criteria=notification_criteria.strip(),
            analysis_prompt=build_analysis_prompt(notification_criteria),
            frequency=Frequency(frequency),
            scheduled_time=scheduled_time.strip(),
            day_of_week=DayOfWeek(day_of_week) if day_of_week else None,
            is_running=True,
        )
        _validate_definition(task)
        task.next_scheduled_run = next_run(task, self._clock(), self._tz)

        created = await self._store.add(task)
        logger.info(f"Created task {created.task_id}, first run at {created.next_scheduled_run}")
        return created

    async def get_task(self, task_id: str) -> WatchTask | None:
        """Get a task by ID."""
        return await self._store.get(task_id)

    async def list_tasks(self) -> list[WatchTask]:
        """Get all tasks."""
        return await self._store.get_all()

    async def update_task(self, task_id: str, **updates: Any) -> WatchTask | None:
        """Edit a task's definition.

        Changing the criteria clears the previous result. Changing the
        schedule of a running task recomputes its next run.
        """
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise TaskValidationError(f"Cannot edit fields: {', '.join(sorted(unknown))}")
        updates = {k: v for k, v in updates.items() if v is not None}

        current = await self._store.get(task_id)
        if current is None:
            return None
        if not updates:
            return current

        if "frequency" in updates:
            updates["frequency"] = Frequency(updates["frequency"])
        if "day_of_week" in updates:
            updates["day_of_week"] = DayOfWeek(updates["day_of_week"])

        candidate = dataclasses.replace(current, **updates)
        _validate_definition(candidate)
        if candidate.frequency != Frequency.WEEKLY and "frequency" in updates:
            updates["day_of_week"] = None
            candidate.day_of_week = None

        if current.is_running and _SCHEDULE_FIELDS & set(updates):
            updates["next_scheduled_run"] = next_run(candidate, self._clock(), self._tz)

        updated = await self._store.merge_update(task_id, updates)
        if updated:
            logger.info(f"Updated task {task_id}: {', '.join(sorted(updates))}")
        return updated

    async def start_task(self, task_id: str) -> WatchTask | None:
        """Resume a stopped task with a freshly computed next run."""
        current = await self._store.get(task_id)
        if current is None:
            return None
        updated = await self._store.merge_update(
            task_id,
            {
                "is_running": True,
                "next_scheduled_run": next_run(current, self._clock(), self._tz),
            },
        )
        if updated:
            logger.info(f"Started task {task_id}, next run at {updated.next_scheduled_run}")
        return updated

    async def stop_task(self, task_id: str) -> WatchTask | None:
        """Stop a task and clear its schedule; an in-flight run still finishes."""
        updated = await self._store.merge_update(
            task_id, {"is_running": False, "next_scheduled_run": None}
        )
        if updated:
            logger.info(f"Stopped task {task_id}")
        return updated

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task."""
        return await self._store.delete(task_id)

    async def run_task_now(self, task_id: str) -> RunOutcome | None:
        """Run a task immediately, outside its schedule.

        Returns None if the task does not exist or is already running.
        Failures are recorded on the task and re-raised.
        """
        task = await self._store.get(task_id)
        if task is None:
            return None
        try:
            outcome = await self._executor.execute(task)
        except Exception:
            await self._reschedule(task_id)
            raise
        if outcome is not None:
            await self._reschedule(task_id)
        return outcome

    async def preview(self, website_url: str, notification_criteria: str) -> RunResult:
        """Check a page against criteria without creating a task."""
        message = validate_url(website_url)
        if message:
            raise TaskValidationError(message)
        if not notification_criteria.strip():
            raise TaskValidationError("Notification criteria is required")
        return await self._executor.preview(website_url, notification_criteria)
