from __future__ import annotations

from pathlib import Path
from typing import Protocol


class RepositoryUpstream(Protocol):
    async def exists(self, identifier: str) -> bool:
        """Return True when the repository host reports the identifier resolves."""
        ...

    async def fetch(self, identifier: str, directory: Path) -> None:
        """
        Populate `directory` with a snapshot of the repository.

        Raises FetchFailed (or UpstreamTimeout) when no usable snapshot was produced.
        """
        ...
