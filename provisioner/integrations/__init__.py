"""External integration adapters."""

from .github import GitHubGateway, Identity, RepositoryGateway, RunSummary, WriteResult

__all__ = [
    "GitHubGateway",
    "Identity",
    "RepositoryGateway",
    "RunSummary",
    "WriteResult",
]
