"""Core functionality for the deployer."""

from deployer.core.exceptions import (
    CodeGenerationError,
    ConfigurationError,
    DeployerError,
    DeploymentFailedError,
    DeploymentPhaseError,
    ErrorKind,
    GitCommitError,
    GitHubAPIError,
    PollTimeoutError,
    PromotionError,
    VercelAPIError,
)

__all__ = [
    "CodeGenerationError",
    "ConfigurationError",
    "DeployerError",
    "DeploymentFailedError",
    "DeploymentPhaseError",
    "ErrorKind",
    "GitCommitError",
    "GitHubAPIError",
    "PollTimeoutError",
    "PromotionError",
    "VercelAPIError",
]
