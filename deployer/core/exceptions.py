"""Custom exceptions for the deployer.

Every pipeline failure is a ``DeployerError`` carrying a ``kind`` tag, so
callers can branch on ``error.kind`` without importing each subclass.
Low-level transport errors (``GitHubAPIError``, ``VercelAPIError``) and
polling outcomes (``DeploymentFailedError``, ``PollTimeoutError``) are
wrapped into the tagged errors at each phase boundary.
"""

from enum import Enum
from typing import Any

from deployer.models.deployment import DeploymentPhase, PromotionPhase, RollbackInfo


class ErrorKind(str, Enum):
    """Error taxonomy surfaced to operators."""

    CONFIGURATION = "configuration"
    DEPLOYMENT_PHASE = "deployment_phase"
    CODE_GENERATION = "code_generation"
    GIT_COMMIT = "git_commit"
    PROMOTION = "promotion"


class DeployerError(Exception):
    """Base exception for the deployer."""

    kind: ErrorKind = ErrorKind.DEPLOYMENT_PHASE

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def phase(self) -> str | None:
        """Phase the error is tagged with, if any."""
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and structured logs."""
        data: dict[str, Any] = {
            "error": self.message,
            "kind": self.kind.value,
            "details": self.details,
        }
        if self.phase is not None:
            data["phase"] = self.phase
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data


class ConfigurationError(DeployerError):
    """A required credential is missing."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, variable: str):
        super().__init__(
            f"{variable} environment variable is not set",
            {"variable": variable},
        )
        self.variable = variable


class DeploymentPhaseError(DeployerError):
    """Staging pipeline failure tagged with the active phase."""

    kind = ErrorKind.DEPLOYMENT_PHASE

    def __init__(
        self,
        message: str,
        phase: DeploymentPhase,
        cause: BaseException | None = None,
        timed_out: bool = False,
    ):
        super().__init__(
            message,
            {"phase": phase.value, "timed_out": timed_out},
            cause,
        )
        self._phase = phase
        self.timed_out = timed_out

    @property
    def phase(self) -> str:
        return self._phase.value

    @property
    def deployment_phase(self) -> DeploymentPhase:
        return self._phase


class CodeGenerationError(DeployerError):
    """Code generation failed; callers may retry generation independently."""

    kind = ErrorKind.CODE_GENERATION

    def __init__(
        self, message: str, app_id: str, cause: BaseException | None = None
    ):
        super().__init__(message, {"app_id": app_id}, cause)
        self.app_id = app_id

    @property
    def phase(self) -> str:
        return DeploymentPhase.GENERATE_CODE.value


class GitCommitError(DeployerError):
    """A version-control write failed."""

    kind = ErrorKind.GIT_COMMIT

    def __init__(
        self, message: str, repo_name: str, cause: BaseException | None = None
    ):
        super().__init__(message, {"repo_name": repo_name}, cause)
        self.repo_name = repo_name

    @property
    def phase(self) -> str:
        return DeploymentPhase.COMMIT_CODE.value


class PromotionError(DeployerError):
    """Production promotion failure tagged with the active promotion phase."""

    kind = ErrorKind.PROMOTION

    def __init__(
        self,
        message: str,
        app_id: str,
        phase: PromotionPhase,
        rollback_info: RollbackInfo | None = None,
        cause: BaseException | None = None,
        timed_out: bool = False,
        conflict: bool = False,
        in_progress: bool = False,
    ):
        details: dict[str, Any] = {
            "app_id": app_id,
            "phase": phase.value,
            "timed_out": timed_out,
        }
        if conflict:
            details["conflict"] = True
        if in_progress:
            details["in_progress"] = True
        if rollback_info is not None:
            details["rollback_info"] = rollback_info.model_dump(by_alias=True)
        super().__init__(message, details, cause)
        self.app_id = app_id
        self._phase = phase
        self.rollback_info = rollback_info
        self.timed_out = timed_out
        self.conflict = conflict
        self.in_progress = in_progress

    @property
    def phase(self) -> str:
        return self._phase.value

    @property
    def promotion_phase(self) -> PromotionPhase:
        return self._phase


class GitHubAPIError(Exception):
    """Non-success response from the GitHub REST API."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"GitHub API returned {status_code}: {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_no_commits_between(self) -> bool:
        return "no commits between" in self.message.lower()

    @property
    def is_merge_conflict(self) -> bool:
        return self.status_code in (405, 409) or "merge conflict" in self.message.lower()


class VercelAPIError(Exception):
    """Non-success response from the Vercel REST API."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Vercel API returned {status_code}: {message}")


class DeploymentFailedError(Exception):
    """A matched deployment reached ERROR or CANCELED."""

    def __init__(self, deployment_id: str, state: str):
        self.deployment_id = deployment_id
        self.state = state
        super().__init__(f"Vercel deployment failed with status: {state}")


class PollTimeoutError(Exception):
    """The polling deadline elapsed without a terminal state."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Timed out after {timeout_ms / 1000:g}s")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000
