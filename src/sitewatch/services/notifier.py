"""User notifications for matched conditions."""

import asyncio
import logging
import shutil
from typing import Protocol
from urllib.parse import urlsplit

from sitewatch.models.watch_task import WatchTask
from sitewatch.utils import normalize_url

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, task: WatchTask, analysis: str) -> None: ...


def build_notification(
    task: WatchTask, analysis: str, body_limit: int = 100
) -> tuple[str, str]:
    """Return (title, body) for a matched task."""
    domain = urlsplit(normalize_url(task.website_url)).hostname or task.website_url
    title = f"{domain} matched your condition"
    body = analysis
    if analysis and len(analysis) > body_limit:
        body = analysis[:body_limit] + "..."
    return title, body


class LogNotifier:
    """Writes notifications to the log."""

    def __init__(self, body_limit: int = 100) -> None:
        self._body_limit = body_limit

    async def notify(self, task: WatchTask, analysis: str) -> None:
        title, body = build_notification(task, analysis, self._body_limit)
        logger.info(f"[{task.task_id}] {title}: {body}")


class DesktopNotifier:
    """Shows a persistent desktop notification through ``notify-send``."""

    def __init__(self, body_limit: int = 100, command: str = "notify-send") -> None:
        self._body_limit = body_limit
        self._command = command

    async def notify(self, task: WatchTask, analysis: str) -> None:
        title, body = build_notification(task, analysis, self._body_limit)
        executable = shutil.which(self._command)
        if executable is None:
            logger.warning(f"{self._command} not found; notification for {task.task_id}: {title}")
            return
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                "--urgency=critical",  # Stays until dismissed
                "--app-name=sitewatch",
                title,
                body,
            )
            await proc.wait()
        except OSError as e:
            logger.warning(f"Failed to show notification for task {task.task_id}: {e}")
