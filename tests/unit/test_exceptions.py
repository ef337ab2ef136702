"""Unit tests for the error taxonomy."""

from deployer.core.exceptions import (
    CodeGenerationError,
    ConfigurationError,
    DeployerError,
    DeploymentPhaseError,
    ErrorKind,
    GitCommitError,
    GitHubAPIError,
    PollTimeoutError,
    PromotionError,
)
from deployer.models.deployment import DeploymentPhase, PromotionPhase, RollbackInfo


class TestDeployerErrors:
    """Tests for the tagged pipeline errors."""

    def test_every_error_is_a_deployer_error(self):
        errors = [
            ConfigurationError("GITHUB_TOKEN"),
            DeploymentPhaseError("boom", DeploymentPhase.CREATE_REPO),
            CodeGenerationError("boom", "app_1"),
            GitCommitError("boom", "repo"),
            PromotionError("boom", "app_1", PromotionPhase.MERGE_BRANCHES),
        ]

        assert all(isinstance(e, DeployerError) for e in errors)
        assert [e.kind for e in errors] == [
            ErrorKind.CONFIGURATION,
            ErrorKind.DEPLOYMENT_PHASE,
            ErrorKind.CODE_GENERATION,
            ErrorKind.GIT_COMMIT,
            ErrorKind.PROMOTION,
        ]

    def test_phase_tags(self):
        """Test each error reports the phase it belongs to."""
        assert ConfigurationError("V0_API_KEY").phase is None
        assert DeploymentPhaseError("x", DeploymentPhase.POLL_DEPLOYMENT).phase == "poll_deployment"
        assert CodeGenerationError("x", "app_1").phase == "generate_code"
        assert GitCommitError("x", "repo").phase == "commit_code"
        assert PromotionError("x", "app_1", PromotionPhase.POLL_PRODUCTION).phase == "poll_production"

    def test_deployment_phase_error_to_dict(self):
        cause = RuntimeError("socket closed")
        error = DeploymentPhaseError(
            "Deployment timed out after 60s",
            DeploymentPhase.POLL_DEPLOYMENT,
            cause,
            timed_out=True,
        )

        data = error.to_dict()

        assert data["error"] == "Deployment timed out after 60s"
        assert data["kind"] == "deployment_phase"
        assert data["phase"] == "poll_deployment"
        assert data["details"]["timed_out"] is True
        assert data["cause"] == "socket closed"
        assert error.deployment_phase == DeploymentPhase.POLL_DEPLOYMENT
        assert error.__cause__ is cause

    def test_promotion_error_carries_rollback_info(self):
        rollback = RollbackInfo(
            staging_deployment_id="dpl_1",
            staging_url="https://staging.vercel.app",
            last_known_good_commit="abc123",
        )
        error = PromotionError(
            "Merge conflict detected",
            "app_1",
            PromotionPhase.MERGE_BRANCHES,
            rollback_info=rollback,
            conflict=True,
        )

        assert error.conflict is True
        assert error.in_progress is False
        assert error.promotion_phase == PromotionPhase.MERGE_BRANCHES
        assert error.details["rollback_info"] == {
            "stagingDeploymentId": "dpl_1",
            "stagingUrl": "https://staging.vercel.app",
            "lastKnownGoodCommit": "abc123",
        }


class TestLowLevelErrors:
    """Tests for transport and polling errors."""

    def test_github_not_found(self):
        assert GitHubAPIError(404, "Not Found").is_not_found
        assert not GitHubAPIError(422, "Validation Failed").is_not_found

    def test_github_no_commits_between(self):
        error = GitHubAPIError(422, "Validation Failed: No commits between main and staging")
        assert error.is_no_commits_between

    def test_github_merge_conflict(self):
        assert GitHubAPIError(405, "Pull Request is not mergeable").is_merge_conflict
        assert GitHubAPIError(409, "Head branch was modified").is_merge_conflict
        assert GitHubAPIError(422, "Merge conflict").is_merge_conflict
        assert not GitHubAPIError(500, "Server Error").is_merge_conflict

    def test_poll_timeout_seconds(self):
        error = PollTimeoutError(60000)
        assert error.timeout_seconds == 60
        assert str(error) == "Timed out after 60s"
