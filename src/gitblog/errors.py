from __future__ import annotations


class GitblogError(Exception):
    """Base class for errors surfaced to the request boundary."""


class InvalidIdentifier(GitblogError):
    pass


class NotFound(GitblogError):
    """The upstream host reports that the repository does not exist."""


class FetchFailed(GitblogError):
    """The retrieval mechanism could not produce a snapshot."""


class UpstreamError(FetchFailed):
    """A network call to the repository host failed."""


class UpstreamTimeout(FetchFailed):
    """A network call or clone exceeded its time bound."""
