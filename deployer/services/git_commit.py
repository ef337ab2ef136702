"""Atomic multi-file commits through the GitHub Git data API."""

import asyncio
import base64
from datetime import datetime, timezone

from deployer.config import Settings, get_settings
from deployer.core.exceptions import ConfigurationError, GitCommitError
from deployer.models.generation import GeneratedFile
from deployer.services.github import GitHubClient
from deployer.utils.logging import get_logger

FILE_MODE = "100644"


class GitCommitService:
    """Persists a set of in-memory files onto a branch as one commit.

    Steps: read the branch tip and its tree, create one blob per file,
    create a tree on top of the previous tree, create a commit with the tip
    as its only parent, then move the branch ref. The ref update is the
    publish point; if anything before it fails the created objects stay
    unreferenced and the branch is untouched.
    """

    def __init__(self, github: GitHubClient, settings: Settings | None = None):
        self.github = github
        self.settings = settings or get_settings()
        self.logger = get_logger("git_commit")

    @property
    def owner(self) -> str:
        return self.settings.github_org

    async def commit(
        self,
        repo_name: str,
        branch: str,
        files: list[GeneratedFile],
        message: str | None = None,
    ) -> str:
        """Commit ``files`` to ``branch`` and return the new commit SHA.

        Raises:
            GitCommitError: If any API call fails
            ConfigurationError: If GITHUB_TOKEN is not set
        """
        self.logger.info(
            "git_commit.started",
            repo=f"{self.owner}/{repo_name}",
            branch=branch,
            file_count=len(files),
        )

        try:
            ref = await self.github.get_ref(self.owner, repo_name, f"heads/{branch}")
            parent_sha = ref["object"]["sha"]

            parent = await self.github.get_commit(self.owner, repo_name, parent_sha)
            base_tree_sha = parent["tree"]["sha"]

            tree_entries = await self._create_blob_entries(repo_name, files)

            tree = await self.github.create_tree(
                self.owner, repo_name, tree_entries, base_tree=base_tree_sha
            )

            if message is None:
                timestamp = datetime.now(timezone.utc).isoformat()
                message = f"Deploy to {branch} - {timestamp}"

            new_commit = await self.github.create_commit(
                self.owner,
                repo_name,
                message=message,
                tree=tree["sha"],
                parents=[parent_sha],
            )
            commit_sha = new_commit["sha"]

            await self.github.update_ref(self.owner, repo_name, f"heads/{branch}", commit_sha)

        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.error(
                "git_commit.failed",
                repo=f"{self.owner}/{repo_name}",
                branch=branch,
                error=str(e),
            )
            raise GitCommitError(
                f"Failed to commit files to GitHub: {e}", repo_name, e
            ) from e

        self.logger.info(
            "git_commit.completed",
            repo=f"{self.owner}/{repo_name}",
            branch=branch,
            commit_sha=commit_sha,
        )
        return commit_sha

    async def _create_blob_entries(
        self, repo_name: str, files: list[GeneratedFile]
    ) -> list[dict[str, str]]:
        """Create all blobs concurrently; the first failure cancels the rest."""
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._create_blob_entry(repo_name, f)) for f in files]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
        return [task.result() for task in tasks]

    async def _create_blob_entry(self, repo_name: str, file: GeneratedFile) -> dict[str, str]:
        encoded = base64.b64encode(file.content.encode("utf-8")).decode("ascii")
        blob = await self.github.create_blob(self.owner, repo_name, encoded, encoding="base64")
        return {
            "path": file.path,
            "mode": FILE_MODE,
            "type": "blob",
            "sha": blob["sha"],
        }
