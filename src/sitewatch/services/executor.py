"""Runs one check of one watch task and records the outcome."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sitewatch.models.watch_task import RunResult, WatchTask
from sitewatch.services.credentials import CredentialStore
from sitewatch.services.notifier import Notifier
from sitewatch.services.snapshot import Snapshotter
from sitewatch.services.task_store import TaskStore
from sitewatch.services.vision import Analyzer
from sitewatch.utils import normalize_url

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunOutcome:
    """Result of a completed execution."""

    task_id: str
    result: RunResult
    notified: bool = False
    task: WatchTask | None = None  # Stored state after the write (None if deleted)


class AnalysisExecutor:
    """Snapshot, analyze, persist, notify.

    At most one execution per task id is in flight at any time; a second
    request for a busy task is skipped rather than queued.
    """

    def __init__(
        self,
        store: TaskStore,
        snapshotter: Snapshotter,
        analyzer: Analyzer,
        notifier: Notifier,
        credentials: CredentialStore,
        provider: str = "openai",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._snapshotter = snapshotter
        self._analyzer = analyzer
        self._notifier = notifier
        self._credentials = credentials
        self._provider = provider
        self._clock = clock
        self._in_flight: set[str] = set()

    def is_busy(self, task_id: str) -> bool:
        """Whether an execution for ``task_id`` is currently in flight."""
        return task_id in self._in_flight

    async def execute(self, task: WatchTask) -> RunOutcome | None:
        """Run ``task`` once.

        Returns:
            The outcome, or None if the task already had an execution in flight.

        Raises:
            ConfigurationError, CaptureError, AnalysisError: After the failure
                has been recorded on the task.
            TaskStoreError: If the outcome could not be persisted.
        """
        if task.task_id in self._in_flight:
            logger.info(f"Task {task.task_id} is already running, skipping")
            return None

        self._in_flight.add(task.task_id)
        try:
            return await self._run(task)
        finally:
            self._in_flight.discard(task.task_id)

    async def _run(self, task: WatchTask) -> RunOutcome:
        logger.info(
            f"Running task {task.task_id}: {task.website_url} "
            f"(provider={self._provider})"
        )
        try:
            result = await self._check(task.website_url, task.notification_criteria, task.task_id)
        except Exception as e:
            error = RunResult(result=str(e) or type(e).__name__, timestamp=self._clock())
            logger.warning(f"Task {task.task_id} failed: {error.result}")
            stored = await self._store.merge_update(
                task.task_id,
                {
                    "last_result": error.result,
                    "last_matched_criteria": None,
                    "last_test_result": error,
                    "last_run": error.timestamp,
                },
            )
            if stored is None:
                logger.warning(f"Task {task.task_id} was deleted during its run")
            raise

        stored = await self._store.merge_update(
            task.task_id,
            {
                "last_result": result.result,
                "last_matched_criteria": result.matched,
                "last_test_result": result,
                "last_run": result.timestamp,
            },
        )
        outcome = RunOutcome(task_id=task.task_id, result=result, task=stored)
        if stored is None:
            logger.warning(f"Task {task.task_id} was deleted during its run, result dropped")
            return outcome

        if result.matched is True:
            logger.info(f"Criteria matched for task {task.task_id}, sending notification")
            try:
                await self._notifier.notify(stored, result.result)
                outcome.notified = True
            except Exception:
                # Delivery is best effort; the result is already stored
                logger.exception(f"Notification failed for task {task.task_id}")
        elif result.matched is None:
            logger.warning(f"Task {task.task_id} produced an unparseable analysis")
        else:
            logger.info(f"Criteria not matched for task {task.task_id}")
        return outcome

    async def _check(self, website_url: str, criteria: str, task_id: str | None) -> RunResult:
        api_key = self._credentials.resolve(self._provider)
        url = normalize_url(website_url)
        snapshot = await self._snapshotter.capture(url, task_id=task_id)
        analysis = await self._analyzer.analyze(self._provider, api_key, snapshot, criteria)
        return RunResult(
            result=analysis.analysis,
            matched=analysis.matched,
            timestamp=self._clock(),
            screenshot=str(snapshot.path) if snapshot.path else None,
        )

    async def preview(self, website_url: str, criteria: str) -> RunResult:
        """Check a URL against criteria without storing anything."""
        return await self._check(website_url, criteria, task_id=None)
