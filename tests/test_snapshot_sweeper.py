import asyncio
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

from gitblog.logging import NO_SCOPE, current_scope
from gitblog.snapshot.jobs import JobQueue
from gitblog.snapshot.models import JobState
from gitblog.snapshot.sweeper import SnapshotSweeper

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TTL = timedelta(seconds=60)
EXPIRED = NOW - TTL - timedelta(milliseconds=1)


class SnapshotSweeperTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.jobs = JobQueue()
        self.sweeper = SnapshotSweeper(jobs=self.jobs, ttl=TTL, interval_seconds=0.01, clock=lambda: NOW)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _snapshot_dir(self, key: str) -> Path:
        directory = self.root / key
        (directory / "docs").mkdir(parents=True)
        (directory / "docs" / "a.md").write_text("# A", encoding="utf-8")
        return directory

    async def test_tick_deletes_expired_directory(self) -> None:
        directory = self._snapshot_dir("k1")
        self.jobs.register("k1", directory, state=JobState.REMOVABLE, created_at=EXPIRED)

        job = await self.sweeper.tick()

        self.assertEqual(job.id, "k1")
        self.assertFalse(directory.exists())
        self.assertEqual(len(self.jobs), 0)

    async def test_tick_leaves_pending_directory(self) -> None:
        directory = self._snapshot_dir("k1")
        self.jobs.register("k1", directory, created_at=EXPIRED)

        self.assertIsNone(await self.sweeper.tick())
        self.assertTrue(directory.exists())

    async def test_tick_reclaims_one_job_at_a_time(self) -> None:
        first = self._snapshot_dir("k1")
        second = self._snapshot_dir("k2")
        self.jobs.register("k1", first, state=JobState.REMOVABLE, created_at=EXPIRED)
        self.jobs.register("k2", second, state=JobState.REMOVABLE, created_at=EXPIRED)

        await self.sweeper.tick()

        self.assertFalse(first.exists())
        self.assertTrue(second.exists())

    async def test_failed_deletion_still_drops_job(self) -> None:
        directory = self._snapshot_dir("k1")
        self.jobs.register("k1", directory, state=JobState.REMOVABLE, created_at=EXPIRED)

        with mock.patch("gitblog.snapshot.sweeper.shutil.rmtree", side_effect=PermissionError("denied")):
            with self.assertLogs("gitblog.snapshot.sweeper", level="WARNING"):
                job = await self.sweeper.tick()

        self.assertEqual(job.id, "k1")
        self.assertEqual(len(self.jobs), 0)
        self.assertTrue(directory.exists())

    async def test_missing_directory_is_not_an_error(self) -> None:
        self.jobs.register("gone", self.root / "gone", state=JobState.REMOVABLE, created_at=EXPIRED)

        job = await self.sweeper.tick()

        self.assertEqual(job.id, "gone")

    async def test_drain_reclaims_everything_expired(self) -> None:
        for key in ["k1", "k2", "k3"]:
            self.jobs.register(key, self._snapshot_dir(key), state=JobState.REMOVABLE, created_at=EXPIRED)
        self.jobs.register("fresh", self._snapshot_dir("fresh"), state=JobState.REMOVABLE, created_at=NOW)

        removed = await self.sweeper.drain()

        self.assertEqual([job.id for job in removed], ["k1", "k2", "k3"])
        self.assertEqual([job.id for job in self.jobs], ["fresh"])

    async def test_runtime_loop_sweeps_until_stopped(self) -> None:
        directories = [self._snapshot_dir(key) for key in ["k1", "k2"]]
        for directory in directories:
            self.jobs.register(directory.name, directory, state=JobState.REMOVABLE, created_at=EXPIRED)

        self.sweeper.start()
        self.assertTrue(self.sweeper.running)
        for _ in range(200):
            if len(self.jobs) == 0:
                break
            await asyncio.sleep(0.01)
        await self.sweeper.stop()

        self.assertFalse(self.sweeper.running)
        self.assertEqual(len(self.jobs), 0)
        self.assertFalse(any(directory.exists() for directory in directories))

    async def test_loop_survives_failing_tick(self) -> None:
        calls = 0
        real_sweep_one = self.jobs.sweep_one

        def flaky(**kwargs):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return real_sweep_one(**kwargs)

        with mock.patch.object(self.jobs, "sweep_one", side_effect=flaky):
            with self.assertLogs("gitblog.snapshot.sweeper", level="ERROR"):
                self.sweeper.start()
                for _ in range(200):
                    if calls >= 2:
                        break
                    await asyncio.sleep(0.01)
                await self.sweeper.stop()

        self.assertGreaterEqual(calls, 2)

    async def test_loop_logs_under_sweeper_scope(self) -> None:
        scopes = []

        async def recording_tick():
            scopes.append(current_scope())
            return None

        with mock.patch.object(self.sweeper, "tick", side_effect=recording_tick):
            self.sweeper.start()
            for _ in range(200):
                if scopes:
                    break
                await asyncio.sleep(0.01)
            await self.sweeper.stop()

        self.assertEqual(scopes[0], "sweeper")
        self.assertEqual(current_scope(), NO_SCOPE)


if __name__ == "__main__":
    unittest.main()
