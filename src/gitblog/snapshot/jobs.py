from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Literal, Optional

from gitblog.snapshot.models import JobState, SnapshotJob
from gitblog.utils import format_rfc3339, utc_now

logger = logging.getLogger(__name__)

RecoveredAge = Literal["startup", "mtime"]


class JobQueue:
    """
    Ordered collection of snapshot lifecycle records.

    Entries are not deduplicated by id: two fetches started for the same key
    produce two jobs, and both are reclaimed independently.
    """

    def __init__(self) -> None:
        self._jobs: list[SnapshotJob] = []

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[SnapshotJob]:
        return iter(list(self._jobs))

    def jobs_for(self, key: str) -> list[SnapshotJob]:
        return [job for job in self._jobs if job.id == key]

    def register(
        self,
        key: str,
        directory: Path,
        *,
        state: JobState = JobState.PENDING,
        created_at: Optional[datetime] = None,
    ) -> SnapshotJob:
        job = SnapshotJob(
            id=key,
            directory=directory,
            created_at=created_at or utc_now(),
            state=state,
        )
        self._jobs.append(job)
        logger.debug(
            "Snapshot job registered. key=%s state=%s created_at=%s",
            key,
            state.value,
            format_rfc3339(job.created_at),
        )
        return job

    def mark_removable(self, key: str) -> int:
        changed = 0
        for job in self._jobs:
            if job.id == key and job.state is not JobState.REMOVABLE:
                job.state = JobState.REMOVABLE
                changed += 1
        return changed

    def sweep_one(self, *, now: datetime, ttl: timedelta) -> Optional[SnapshotJob]:
        """Remove and return the first removable job at least `ttl` old, if any."""
        for index, job in enumerate(self._jobs):
            if job.is_reclaimable(now=now, ttl=ttl):
                del self._jobs[index]
                return job
        return None

    def recover_existing(
        self,
        cache_root: Path,
        *,
        now: Optional[datetime] = None,
        recovered_age: RecoveredAge = "startup",
    ) -> list[SnapshotJob]:
        """
        Register every snapshot directory already under `cache_root` as removable.

        With recovered_age="startup" the snapshot ages from `now`; with "mtime"
        it ages from the directory's own modification time.
        """
        if not cache_root.is_dir():
            return []

        now = now or utc_now()
        recovered: list[SnapshotJob] = []
        for directory in sorted(cache_root.iterdir()):
            # Staging directories left by an interrupted fetch are reclaimed too.
            if not directory.is_dir():
                continue
            created_at = now
            if recovered_age == "mtime":
                try:
                    created_at = datetime.fromtimestamp(directory.stat().st_mtime, tz=timezone.utc)
                except OSError as e:
                    logger.warning("Failed to stat recovered snapshot. path=%s error=%s", directory, e)
            recovered.append(
                self.register(directory.name, directory, state=JobState.REMOVABLE, created_at=created_at)
            )

        if recovered:
            logger.info(
                "Recovered existing snapshots. count=%d root=%s policy=%s",
                len(recovered),
                cache_root,
                recovered_age,
            )
        return recovered
