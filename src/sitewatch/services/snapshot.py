"""Browser-based page snapshots."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from patchright.async_api import Error as PlaywrightError
from patchright.async_api import async_playwright

from sitewatch.errors import CaptureError

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """A captured page image."""

    url: str
    image: bytes  # PNG
    captured_at: datetime
    path: Path | None = None


class Snapshotter(Protocol):
    async def capture(self, url: str, task_id: str | None = None) -> Snapshot: ...


class BrowserSnapshotter:
    """Takes full-viewport PNG screenshots with a headless Chromium page."""

    def __init__(
        self,
        output_dir: Path,
        width: int = 1920,
        height: int = 1080,
        settle_ms: int = 2000,
        timeout_ms: int = 60000,
        executable_path: str | None = None,
        headless: bool = True,
    ) -> None:
        self._output_dir = output_dir
        self._width = width
        self._height = height
        self._settle_ms = settle_ms
        self._timeout_ms = timeout_ms
        self._executable_path = executable_path
        self._headless = headless

    async def capture(self, url: str, task_id: str | None = None) -> Snapshot:
        """Load ``url`` and screenshot it.

        Raises:
            CaptureError: If the browser cannot load or capture the page.
        """
        launch_opts: dict = {"headless": self._headless}
        if self._executable_path:
            launch_opts["executable_path"] = self._executable_path

        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(**launch_opts)
                try:
                    page = await browser.new_page(
                        viewport={"width": self._width, "height": self._height}
                    )
                    await page.goto(
                        url, wait_until="domcontentloaded", timeout=self._timeout_ms
                    )
                    # Give client-side rendering a moment to finish
                    await asyncio.sleep(self._settle_ms / 1000)
                    image = await page.screenshot(type="png")
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise CaptureError(
                f"Could not capture screenshot from {url}. "
                f"Please check if the website is accessible. ({e})"
            ) from e

        captured_at = datetime.now(timezone.utc)
        path = self._store(image, captured_at, task_id) if task_id else None
        logger.info(f"Captured {url} ({len(image)} bytes)")
        return Snapshot(url=url, image=image, captured_at=captured_at, path=path)

    def _store(self, image: bytes, captured_at: datetime, task_id: str) -> Path | None:
        target = self._output_dir / task_id / f"{captured_at:%Y%m%dT%H%M%S}.png"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(image)
        except OSError as e:
            # The image is still analyzed; only the stored reference is lost
            logger.warning(f"Failed to store snapshot for task {task_id}: {e}")
            return None
        return target
