"""Background refresh of the Deno module directory."""

from __future__ import annotations

import asyncio
import logging

from pkgscan.analyzers.directory import KnownModuleDirectory

logger = logging.getLogger(__name__)


class DirectoryRefresher:
    """Keeps a KnownModuleDirectory up to date from a background task.

    The first refresh starts immediately; later ones follow every ``interval``
    seconds. Failed refreshes are retried with exponential backoff, capped at
    the regular interval. Nothing on the scan path waits for this task.

    Usage:
        async with DirectoryRefresher(directory, interval=3600):
            ...  # scans run while the directory fills in
    """

    # Seconds to wait after a failed refresh before retrying
    ERROR_BACKOFF_BASE = 30.0

    def __init__(self, directory: KnownModuleDirectory, interval: float = 3600.0) -> None:
        """Initialize the refresher.

        Args:
            directory: Directory to refresh.
            interval: Seconds between successful refreshes. ``0`` refreshes once.
        """
        self.directory = directory
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._consecutive_errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Launch the refresh task if it isn't already running."""
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="deno-directory-refresh")
        return self._task

    async def stop(self) -> None:
        """Cancel the refresh task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> DirectoryRefresher:
        self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    def _next_delay(self, refreshed: bool) -> float:
        if refreshed:
            self._consecutive_errors = 0
            return self.interval

        self._consecutive_errors += 1
        backoff = self.ERROR_BACKOFF_BASE * (2 ** (self._consecutive_errors - 1))
        if self.interval > 0:
            backoff = min(backoff, self.interval)
        return backoff

    async def _run(self) -> None:
        """Refresh loop."""
        while True:
            refreshed = await self.directory.refresh()
            if self.interval <= 0:
                if not refreshed:
                    logger.info("Deno directory refresh failed; not retrying (interval=0)")
                return

            delay = self._next_delay(refreshed)
            logger.debug(f"Next Deno directory refresh in {delay:.0f}s")
            await asyncio.sleep(delay)
