from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Tuple

from gitblog.config.models import AppConfig
from gitblog.documents.loader import load_snapshot, read_repository_metadata
from gitblog.documents.models import SnapshotIndex
from gitblog.snapshot.cache import SnapshotCache
from gitblog.snapshot.jobs import JobQueue
from gitblog.snapshot.sweeper import SnapshotSweeper
from gitblog.upstream.github import GitHubUpstream
from gitblog.upstream.interfaces import RepositoryUpstream

logger = logging.getLogger(__name__)


class BlogService:
    """Turns a repository identifier into the `{repo, metadata, articles}` payload."""

    def __init__(self, *, cache: SnapshotCache, sweeper: SnapshotSweeper, recovered_age: str = "startup") -> None:
        self.cache = cache
        self.sweeper = sweeper
        self._recovered_age = recovered_age

    @classmethod
    def from_config(cls, config: AppConfig, *, upstream: RepositoryUpstream | None = None) -> BlogService:
        jobs = JobQueue()
        cache = SnapshotCache(
            root_dir=Path(config.cache.root_dir),
            jobs=jobs,
            upstream=upstream or GitHubUpstream(config.upstream),
            dedupe_inflight_fetches=config.cache.dedupe_inflight_fetches,
        )
        sweeper = SnapshotSweeper(
            jobs=jobs,
            ttl=timedelta(milliseconds=config.cache.ttl_ms),
            interval_seconds=config.cache.sweep_interval_seconds,
        )
        return cls(cache=cache, sweeper=sweeper, recovered_age=config.cache.recovered_age)

    def recover(self) -> None:
        self.cache.jobs.recover_existing(self.cache.root_dir, recovered_age=self._recovered_age)

    async def start(self) -> None:
        self.recover()
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()

    async def build_payload(self, identifier: str) -> Dict[str, Any]:
        async with self.cache.checkout(identifier) as snapshot:
            index, metadata = await asyncio.to_thread(_read_snapshot, snapshot.directory)

        logger.info(
            "Blog payload built. repo=%s cache_hit=%s articles=%d",
            snapshot.identifier,
            snapshot.cache_hit,
            len(index.articles),
        )
        return {
            "repo": snapshot.identifier,
            "metadata": metadata,
            "articles": [article.to_dict() for article in index.articles],
        }


def _read_snapshot(directory: Path) -> Tuple[SnapshotIndex, Dict[str, Any]]:
    # Runs off the event loop; the checkout keeps `directory` alive until it returns.
    index = load_snapshot(directory)
    return index, read_repository_metadata(directory, index.about)
