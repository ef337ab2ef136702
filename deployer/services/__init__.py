"""External service clients for the deployer."""

from deployer.services.git_commit import GitCommitService
from deployer.services.github import GitHubClient
from deployer.services.repository import GitHubRepositoryManager, repo_name_for
from deployer.services.v0 import V0CodeGenerator
from deployer.services.vercel import VercelClient

__all__ = [
    "GitCommitService",
    "GitHubClient",
    "GitHubRepositoryManager",
    "V0CodeGenerator",
    "VercelClient",
    "repo_name_for",
]
