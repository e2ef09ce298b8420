import os
import stat
import tempfile
import unittest
from pathlib import Path

from aiohttp import web
from aiohttp.test_utils import TestServer

from gitblog.config.models import UpstreamSettings
from gitblog.errors import FetchFailed, UpstreamTimeout
from gitblog.upstream.github import GitHubUpstream, git_noninteractive_env


def _script(directory: Path, body: str) -> str:
    path = directory / "fake-git"
    path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


class ExistsTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.seen_user_agents: list[str] = []

        async def head_repo(request: web.Request) -> web.Response:
            self.seen_user_agents.append(request.headers.get("User-Agent", ""))
            if request.match_info["name"] == "blog.git":
                return web.Response(status=200)
            return web.Response(status=404)

        app = web.Application()
        app.router.add_route("HEAD", "/{owner}/{name}", head_repo)
        self.server = TestServer(app)
        await self.server.start_server()
        base_url = str(self.server.make_url("")).rstrip("/")
        self.upstream = GitHubUpstream(UpstreamSettings(base_url=base_url, user_agent="gitblog-tests"))

    async def asyncTearDown(self) -> None:
        await self.server.close()

    async def test_existing_repository(self) -> None:
        self.assertTrue(await self.upstream.exists("octo/blog"))
        self.assertEqual(self.seen_user_agents, ["gitblog-tests"])

    async def test_missing_repository(self) -> None:
        self.assertFalse(await self.upstream.exists("octo/nothing"))


@unittest.skipUnless(os.name == "posix", "uses a shell script as the git binary")
class FetchTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.target = self.tmp / "cache" / "key"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_successful_clone(self) -> None:
        # Arguments: clone --depth N --quiet URL DIR
        git = _script(self.tmp, 'mkdir -p "$6" && echo "$5" > "$6/url.txt"')
        upstream = GitHubUpstream(UpstreamSettings(git_binary=git))

        await upstream.fetch("octo/blog", self.target)

        self.assertEqual((self.target / "url.txt").read_text(encoding="utf-8").strip(), "https://github.com/octo/blog.git")

    async def test_nonzero_exit_is_fetch_failed(self) -> None:
        git = _script(self.tmp, 'echo "fatal: repository not found" >&2; exit 128')
        upstream = GitHubUpstream(UpstreamSettings(git_binary=git))

        with self.assertRaises(FetchFailed) as ctx:
            await upstream.fetch("octo/blog", self.target)
        self.assertIn("repository not found", str(ctx.exception))

    async def test_slow_clone_times_out(self) -> None:
        git = _script(self.tmp, "exec sleep 10")
        upstream = GitHubUpstream(UpstreamSettings(git_binary=git, clone_timeout_seconds=0.2))

        with self.assertRaises(UpstreamTimeout):
            await upstream.fetch("octo/blog", self.target)

    async def test_missing_binary_is_fetch_failed(self) -> None:
        upstream = GitHubUpstream(UpstreamSettings(git_binary=str(self.tmp / "no-such-git")))

        with self.assertRaises(FetchFailed):
            await upstream.fetch("octo/blog", self.target)


class HelperTests(unittest.TestCase):
    def test_clone_url(self) -> None:
        upstream = GitHubUpstream(UpstreamSettings(base_url="https://example.org/"))
        self.assertEqual(upstream.clone_url("octo/blog"), "https://example.org/octo/blog.git")

    def test_noninteractive_env(self) -> None:
        env = git_noninteractive_env()
        self.assertEqual(env["GIT_TERMINAL_PROMPT"], "0")
        self.assertEqual(env["GCM_INTERACTIVE"], "never")


if __name__ == "__main__":
    unittest.main()
