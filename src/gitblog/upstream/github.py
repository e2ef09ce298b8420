from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import aiohttp

from gitblog.config.models import UpstreamSettings
from gitblog.errors import FetchFailed, UpstreamError, UpstreamTimeout

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2000


def git_noninteractive_env() -> dict[str, str]:
    """Return a copy of the environment with interactive git prompts disabled."""
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    return env


class GitHubUpstream:
    """Existence check over HTTP and shallow `git clone` retrieval."""

    def __init__(self, config: UpstreamSettings) -> None:
        self._config = config

    def clone_url(self, identifier: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{identifier}.git"

    async def exists(self, identifier: str) -> bool:
        url = self.clone_url(identifier)
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
        headers = {"User-Agent": self._config.user_agent}
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.head(url, allow_redirects=True) as response:
                    status = response.status
        except asyncio.TimeoutError as e:
            logger.warning("Repository existence check timed out. url=%s", url)
            raise UpstreamTimeout(f"Existence check timed out: {url}") from e
        except aiohttp.ClientError as e:
            logger.warning("Repository existence check failed. url=%s error=%s", url, e)
            raise UpstreamError(f"Existence check failed: {url}") from e

        logger.info("Repository existence check. url=%s status=%s", url, status)
        return status == 200

    async def fetch(self, identifier: str, directory: Path) -> None:
        url = self.clone_url(identifier)
        directory.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self._config.git_binary,
            "clone",
            "--depth",
            str(self._config.clone_depth),
            "--quiet",
            url,
            str(directory),
        ]
        logger.info("Cloning repository. url=%s path=%s", url, directory)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=git_noninteractive_env(),
            )
        except FileNotFoundError as e:
            raise FetchFailed(f"git executable not found: {self._config.git_binary}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._config.clone_timeout_seconds)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            logger.warning(
                "Repository clone timed out. url=%s timeout_seconds=%s",
                url,
                self._config.clone_timeout_seconds,
            )
            raise UpstreamTimeout(f"Clone timed out: {url}") from e

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL_CHARS:]
            logger.warning("Repository clone failed. url=%s returncode=%s stderr=%s", url, proc.returncode, detail)
            raise FetchFailed(f"git clone exited with {proc.returncode}: {detail}")
