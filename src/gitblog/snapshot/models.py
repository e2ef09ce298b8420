from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path


class JobState(enum.Enum):
    PENDING = "pending"
    REMOVABLE = "removable"


@dataclass(slots=True)
class SnapshotJob:
    id: str
    directory: Path
    created_at: datetime
    state: JobState = JobState.PENDING

    def is_reclaimable(self, *, now: datetime, ttl: timedelta) -> bool:
        return self.state is JobState.REMOVABLE and now - self.created_at >= ttl


@dataclass(frozen=True, slots=True)
class Snapshot:
    key: str
    identifier: str
    directory: Path
    cache_hit: bool
