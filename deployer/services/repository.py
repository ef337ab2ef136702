"""GitHub repository management for generated apps.

Repository naming convention: ``{owner_id[:8]}-{app_slug}``, e.g.
``a1b2c3d4-psych-intake``. New repositories are private, auto-initialised
with a README and the Node .gitignore, and get a ``staging`` branch cut
from ``main``.
"""

import asyncio
import re

from deployer.config import Settings, get_settings
from deployer.core.exceptions import GitHubAPIError
from deployer.models.app import RepositoryInfo
from deployer.models.deployment import MAIN_BRANCH, STAGING_BRANCH
from deployer.services.github import GitHubClient
from deployer.utils.logging import get_logger

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")

INIT_MAX_ATTEMPTS = 10
INIT_DELAY_SECONDS = 0.5


class RepositoryCreationError(Exception):
    """Creating or locating an app repository failed."""


def repo_name_for(owner_id: str, app_slug: str) -> str:
    """Build the deterministic repository name for an app."""
    return f"{owner_id[:8]}-{app_slug}"


def validate_repo_inputs(owner_id: str, app_slug: str) -> None:
    if not owner_id or not owner_id.strip():
        raise RepositoryCreationError("owner_id must be a non-empty string")
    if not app_slug or not app_slug.strip():
        raise RepositoryCreationError("app_slug must be a non-empty string")
    if not SLUG_PATTERN.match(app_slug):
        raise RepositoryCreationError(
            "app_slug must contain only lowercase letters, numbers, and hyphens"
        )


class GitHubRepositoryManager:
    """Creates and locates the repository backing each app."""

    def __init__(
        self,
        github: GitHubClient,
        settings: Settings | None = None,
        init_delay_seconds: float = INIT_DELAY_SECONDS,
    ):
        self.github = github
        self.settings = settings or get_settings()
        self.init_delay_seconds = init_delay_seconds
        self.logger = get_logger("repository")

    @property
    def org(self) -> str:
        return self.settings.github_org

    def repo_url(self, repo_name: str, owner: str | None = None) -> str:
        return f"https://github.com/{owner or self.org}/{repo_name}"

    async def repository_exists(self, repo_name: str) -> bool:
        """Check the organization for ``repo_name``.

        Returns False only on a 404; any other API failure propagates.
        """
        try:
            await self.github.get_repo(self.org, repo_name)
        except GitHubAPIError as e:
            if e.is_not_found:
                return False
            raise
        return True

    async def ensure_repository(self, owner_id: str, app_slug: str) -> RepositoryInfo:
        """Create the app repository, or return it if it already exists.

        Raises:
            RepositoryCreationError: On invalid input or any creation failure
            ConfigurationError: If GITHUB_TOKEN is not set
        """
        validate_repo_inputs(owner_id, app_slug)
        repo_name = repo_name_for(owner_id, app_slug)
        options = {
            "description": f"Generated by Fastform - {app_slug}",
            "private": True,
            "auto_init": True,
            "gitignore_template": "Node",
        }

        self.logger.info("repository.creating", org=self.org, repo=repo_name)

        owner = self.org
        try:
            repo = await self.github.create_repo_in_org(self.org, repo_name, **options)
        except GitHubAPIError as e:
            if e.status_code in (403, 404):
                # No org access; fall back to the token owner's account
                user = await self._authenticated_login()
                owner = user
                self.logger.warning(
                    "repository.org_unavailable",
                    org=self.org,
                    fallback_owner=owner,
                    status=e.status_code,
                )
                try:
                    repo = await self.github.create_repo_for_authenticated_user(
                        repo_name, **options
                    )
                except GitHubAPIError as user_error:
                    raise _creation_error(repo_name, user_error) from user_error
            elif e.status_code == 422:
                return await self._existing_repository(repo_name, e)
            else:
                raise _creation_error(repo_name, e) from e

        await self._wait_for_initialization(owner, repo_name)
        await self._create_staging_branch(owner, repo_name)

        self.logger.info("repository.created", owner=owner, repo=repo_name)
        return RepositoryInfo(
            repo_name=repo.get("name", repo_name),
            repo_url=repo.get("html_url") or self.repo_url(repo_name, owner),
            owner=owner,
        )

    async def _authenticated_login(self) -> str:
        try:
            user = await self.github.get_authenticated_user()
        except GitHubAPIError as e:
            raise RepositoryCreationError(
                f"Failed to resolve authenticated GitHub user: {e.message}"
            ) from e
        return user["login"]

    async def _existing_repository(
        self, repo_name: str, cause: GitHubAPIError
    ) -> RepositoryInfo:
        self.logger.info("repository.already_exists", repo=repo_name)
        for owner in (self.org, await self._authenticated_login()):
            try:
                repo = await self.github.get_repo(owner, repo_name)
            except GitHubAPIError as e:
                if e.is_not_found:
                    continue
                raise _creation_error(repo_name, e) from e
            return RepositoryInfo(
                repo_name=repo.get("name", repo_name),
                repo_url=repo.get("html_url") or self.repo_url(repo_name, owner),
                owner=owner,
            )
        raise RepositoryCreationError(
            f"Repository {repo_name} already exists but could not be retrieved"
        ) from cause

    async def _wait_for_initialization(self, owner: str, repo_name: str) -> None:
        """Wait for auto_init to create the default branch."""
        for attempt in range(INIT_MAX_ATTEMPTS):
            try:
                await self.github.get_ref(owner, repo_name, f"heads/{MAIN_BRANCH}")
                return
            except GitHubAPIError as e:
                if attempt == INIT_MAX_ATTEMPTS - 1:
                    raise RepositoryCreationError(
                        "Repository initialization timed out waiting for default branch"
                    ) from e
                await asyncio.sleep(self.init_delay_seconds)

    async def _create_staging_branch(self, owner: str, repo_name: str) -> None:
        try:
            main_ref = await self.github.get_ref(owner, repo_name, f"heads/{MAIN_BRANCH}")
            await self.github.create_ref(
                owner,
                repo_name,
                f"refs/heads/{STAGING_BRANCH}",
                main_ref["object"]["sha"],
            )
        except GitHubAPIError as e:
            raise RepositoryCreationError("Failed to create staging branch") from e


def _creation_error(repo_name: str, error: GitHubAPIError) -> RepositoryCreationError:
    if error.status_code == 403:
        return RepositoryCreationError(
            "GitHub API rate limit exceeded or insufficient permissions. "
            "Check that GITHUB_TOKEN has repo scope or wait for the rate limit to reset."
        )
    if error.status_code == 422:
        return RepositoryCreationError(f"Repository {repo_name} already exists")
    return RepositoryCreationError(f"Failed to create GitHub repository: {error.message}")
