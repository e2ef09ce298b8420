from gitblog.upstream.github import GitHubUpstream
from gitblog.upstream.interfaces import RepositoryUpstream

__all__ = ["GitHubUpstream", "RepositoryUpstream"]
