"""Deployment data models."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

STAGING_BRANCH = "staging"
MAIN_BRANCH = "main"


class DeploymentPhase(str, Enum):
    """Phases of a staging deployment, in execution order."""

    FETCH_APPSPEC = "fetch_appspec"
    COMPILE_PROMPT = "compile_prompt"
    GENERATE_CODE = "generate_code"
    POST_PROCESS = "post_process"
    CREATE_REPO = "create_repo"
    COMMIT_CODE = "commit_code"
    POLL_DEPLOYMENT = "poll_deployment"


class PromotionPhase(str, Enum):
    """Phases of a production promotion, in execution order."""

    VERIFY_STAGING = "verify_staging"
    MERGE_BRANCHES = "merge_branches"
    POLL_PRODUCTION = "poll_production"


class VercelDeploymentState(str, Enum):
    """Lifecycle state reported by Vercel."""

    QUEUED = "QUEUED"
    INITIALIZING = "INITIALIZING"
    BUILDING = "BUILDING"
    READY = "READY"
    ERROR = "ERROR"
    CANCELED = "CANCELED"

    @property
    def is_terminal_failure(self) -> bool:
        return self in (VercelDeploymentState.ERROR, VercelDeploymentState.CANCELED)

    @property
    def is_in_progress(self) -> bool:
        return self in (
            VercelDeploymentState.QUEUED,
            VercelDeploymentState.INITIALIZING,
            VercelDeploymentState.BUILDING,
        )


class DeploymentMeta(BaseModel):
    """Git metadata Vercel attaches to a deployment."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    github_commit_ref: str | None = Field(default=None, alias="githubCommitRef")
    github_commit_sha: str | None = Field(default=None, alias="githubCommitSha")
    github_commit_message: str | None = Field(default=None, alias="githubCommitMessage")
    github_commit_org: str | None = Field(default=None, alias="githubCommitOrg")
    github_commit_repo: str | None = Field(default=None, alias="githubCommitRepo")
    github_org: str | None = Field(default=None, alias="githubOrg")
    github_repo: str | None = Field(default=None, alias="githubRepo")


class HostedDeployment(BaseModel):
    """Read-only snapshot of one Vercel deployment."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    uid: str
    name: str
    url: str
    state: VercelDeploymentState
    created: int = 0
    target: str | None = None
    meta: DeploymentMeta = Field(default_factory=DeploymentMeta)

    @property
    def commit_sha(self) -> str | None:
        return self.meta.github_commit_sha

    @property
    def branch(self) -> str | None:
        return self.meta.github_commit_ref

    @property
    def https_url(self) -> str:
        if self.url.startswith("https://"):
            return self.url
        return f"https://{self.url}"

    def matches_repo(self, repo_name: str) -> bool:
        return self.name == repo_name or self.meta.github_repo == repo_name

    def matches(self, repo_name: str, commit_sha: str, branch: str) -> bool:
        """Exact match on repository, commit SHA and branch."""
        return (
            self.matches_repo(repo_name)
            and self.commit_sha == commit_sha
            and self.branch == branch
        )


class DeploymentLocation(BaseModel):
    """Where a ready deployment is being served."""

    url: str
    deployment_id: str


class RollbackInfo(BaseModel):
    """Coordinates an operator needs to confirm staging still serves traffic."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    staging_deployment_id: str = Field(alias="stagingDeploymentId")
    staging_url: str = Field(alias="stagingUrl")
    last_known_good_commit: str | None = Field(default=None, alias="lastKnownGoodCommit")


class VerifiedStagingDeployment(BaseModel):
    """The newest READY staging deployment, re-derived from Vercel."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str
    url: str
    commit_sha: str

    def rollback_info(self) -> RollbackInfo:
        return RollbackInfo(
            staging_deployment_id=self.deployment_id,
            staging_url=self.url,
            last_known_good_commit=self.commit_sha,
        )


class MergeResult(BaseModel):
    """Outcome of merging staging into main."""

    model_config = ConfigDict(frozen=True)

    commit_sha: str
    merged_at: datetime
    pull_number: int | None = None
    already_up_to_date: bool = False


class StagingDeploymentResult(BaseModel):
    """Proof that a commit is live on staging."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    staging_url: str = Field(alias="stagingUrl")
    deployment_id: str = Field(alias="deploymentId")
    github_commit_sha: str = Field(alias="githubCommitSha")
    repo_url: str = Field(alias="repoUrl")
    status: Literal["ready"] = "ready"


class ProductionPromotionResult(BaseModel):
    """Outcome of a successful promotion to production."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    production_url: str = Field(alias="productionUrl")
    deployment_id: str = Field(alias="deploymentId")
    github_commit_sha: str = Field(alias="githubCommitSha")
    merged_at: datetime = Field(alias="mergedAt")
    repo_url: str = Field(alias="repoUrl")
    status: Literal["ready"] = "ready"
