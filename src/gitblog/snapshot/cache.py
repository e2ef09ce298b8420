from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict

from gitblog.errors import FetchFailed, NotFound
from gitblog.snapshot.jobs import JobQueue
from gitblog.snapshot.keys import derive_key, normalize_identifier
from gitblog.snapshot.models import Snapshot
from gitblog.upstream.interfaces import RepositoryUpstream

logger = logging.getLogger(__name__)

# Fetches land in "<root>/.staging-<key>.<random>" before being renamed into place.
STAGING_PREFIX = ".staging-"


class SnapshotCache:
    """
    Maps repository identifiers to on-disk snapshots under one cache root.

    A miss registers a pending job and fetches into `<root>/<key>`. Callers
    release the key once they have finished reading, which makes the job
    eligible for the sweeper after the TTL.

    Each fetch clones into its own staging directory and renames it into
    place, so `<root>/<key>` never exists half-populated. Two concurrent
    misses for the same identifier both fetch and the later one discards its
    copy, unless `dedupe_inflight_fetches` is enabled, in which case later
    callers await the first fetch.
    """

    def __init__(
        self,
        *,
        root_dir: Path,
        jobs: JobQueue,
        upstream: RepositoryUpstream,
        dedupe_inflight_fetches: bool = False,
    ) -> None:
        self._root_dir = root_dir
        self._jobs = jobs
        self._upstream = upstream
        self._dedupe = dedupe_inflight_fetches
        self._inflight: Dict[str, asyncio.Future[None]] = {}

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @property
    def jobs(self) -> JobQueue:
        return self._jobs

    def directory_for(self, key: str) -> Path:
        return self._root_dir / key

    async def obtain_snapshot(self, identifier: str) -> Snapshot:
        identifier = normalize_identifier(identifier)
        if not await self._upstream.exists(identifier):
            raise NotFound(f"Repository not found: {identifier}")

        key = derive_key(identifier)
        directory = self.directory_for(key)

        inflight = self._inflight.get(key)
        if inflight is not None:
            logger.info("Waiting for in-flight fetch. repo=%s key=%s", identifier, key)
            await asyncio.shield(inflight)
            return Snapshot(key=key, identifier=identifier, directory=directory, cache_hit=True)

        if directory.is_dir():
            logger.info("Using cached snapshot. repo=%s key=%s", identifier, key)
            return Snapshot(key=key, identifier=identifier, directory=directory, cache_hit=True)

        self._jobs.register(key, directory)
        if not self._dedupe:
            await self._fetch(identifier, key, directory)
            return Snapshot(key=key, identifier=identifier, directory=directory, cache_hit=False)

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            await self._fetch(identifier, key, directory)
        except BaseException as e:
            if isinstance(e, asyncio.CancelledError):
                future.cancel()
            else:
                future.set_exception(e)
                # Mark retrieved so an unawaited future does not log at shutdown.
                future.exception()
            raise
        else:
            future.set_result(None)
        finally:
            self._inflight.pop(key, None)
        return Snapshot(key=key, identifier=identifier, directory=directory, cache_hit=False)

    def release(self, key: str) -> None:
        changed = self._jobs.mark_removable(key)
        logger.debug("Snapshot released. key=%s jobs=%d", key, changed)

    @asynccontextmanager
    async def checkout(self, identifier: str) -> AsyncIterator[Snapshot]:
        """Obtain a snapshot and release its key on exit, whatever the outcome."""
        key = derive_key(normalize_identifier(identifier))
        try:
            yield await self.obtain_snapshot(identifier)
        finally:
            self.release(key)

    def staging_directory_for(self, key: str) -> Path:
        return self._root_dir / f"{STAGING_PREFIX}{key}.{uuid.uuid4().hex}"

    async def _fetch(self, identifier: str, key: str, directory: Path) -> None:
        """
        Fetch into a private staging directory and rename it to `directory`.

        The shared `<root>/<key>` path only ever appears complete, and a failed
        fetch only removes its own staging directory.
        """
        staging = self.staging_directory_for(key)
        try:
            await self._upstream.fetch(identifier, staging)
        except Exception as e:
            await asyncio.to_thread(shutil.rmtree, staging, ignore_errors=True)
            if isinstance(e, FetchFailed):
                raise
            raise FetchFailed(f"Fetch failed for {identifier}: {e}") from e
        if not staging.is_dir():
            raise FetchFailed(f"Fetch produced no snapshot directory for {identifier}")

        try:
            staging.rename(directory)
        except OSError as e:
            await asyncio.to_thread(shutil.rmtree, staging, ignore_errors=True)
            if not directory.is_dir():
                raise FetchFailed(f"Could not move snapshot into place for {identifier}: {e}") from e
            # A concurrent fetch of the same key finished first; its snapshot is kept.
            logger.info("Discarded duplicate fetch. repo=%s key=%s", identifier, key)
            return
        logger.info("Snapshot fetched. repo=%s key=%s path=%s", identifier, key, directory)
