from __future__ import annotations

import asyncio
import logging
import shutil
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from gitblog.logging import log_scope
from gitblog.snapshot.jobs import JobQueue
from gitblog.snapshot.models import SnapshotJob
from gitblog.utils import utc_now

logger = logging.getLogger(__name__)


class SnapshotSweeper:
    """Periodically reclaims one expired, removable snapshot per tick."""

    def __init__(
        self,
        *,
        jobs: JobQueue,
        ttl: timedelta,
        interval_seconds: float,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._jobs = jobs
        self._ttl = ttl
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._runtime_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._runtime_task is not None and not self._runtime_task.done()

    async def tick(self) -> Optional[SnapshotJob]:
        job = self._jobs.sweep_one(now=self._clock(), ttl=self._ttl)
        if job is None:
            return None

        logger.info("Removing expired snapshot. key=%s path=%s", job.id, job.directory)
        try:
            await asyncio.to_thread(_remove_directory, job)
        except OSError as e:
            # The job stays out of the queue; a broken directory is not retried.
            logger.warning("Failed to remove snapshot directory. key=%s path=%s error=%s", job.id, job.directory, e)
        return job

    async def drain(self) -> list[SnapshotJob]:
        """Run ticks until nothing is reclaimable."""
        removed: list[SnapshotJob] = []
        while True:
            job = await self.tick()
            if job is None:
                return removed
            removed.append(job)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._runtime_task = asyncio.create_task(self._runtime_loop())

    async def stop(self) -> None:
        if not self._runtime_task:
            return
        self._stop_event.set()
        await self._runtime_task
        self._runtime_task = None

    async def _runtime_loop(self) -> None:
        with log_scope("sweeper"):
            await self._sweep_until_stopped()

    async def _sweep_until_stopped(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                await self.tick()
            except Exception:
                logger.exception("Snapshot sweep tick failed.")
            elapsed = time.monotonic() - started
            sleep_seconds = max(0.0, self._interval_seconds - elapsed)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_seconds)
            except asyncio.TimeoutError:
                continue


def _remove_directory(job: SnapshotJob) -> None:
    if not job.directory.exists():
        logger.debug("Snapshot directory already gone. key=%s path=%s", job.id, job.directory)
        return
    shutil.rmtree(job.directory)
