from gitblog.snapshot.jobs import JobQueue
from gitblog.snapshot.keys import derive_key, normalize_identifier
from gitblog.snapshot.models import JobState, Snapshot, SnapshotJob

__all__ = [
    "JobQueue",
    "JobState",
    "Snapshot",
    "SnapshotJob",
    "derive_key",
    "normalize_identifier",
]
