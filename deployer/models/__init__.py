"""Data models for the deployer."""

from deployer.models.app import App, AppSpec, AppSpecMeta, AppUpsert, RepositoryInfo
from deployer.models.deployment import (
    MAIN_BRANCH,
    STAGING_BRANCH,
    DeploymentLocation,
    DeploymentMeta,
    DeploymentPhase,
    HostedDeployment,
    MergeResult,
    ProductionPromotionResult,
    PromotionPhase,
    RollbackInfo,
    StagingDeploymentResult,
    VercelDeploymentState,
    VerifiedStagingDeployment,
)
from deployer.models.generation import GeneratedFile, GenerationResult, InjectionResult

__all__ = [
    # App models
    "App",
    "AppSpec",
    "AppSpecMeta",
    "AppUpsert",
    "RepositoryInfo",
    # Deployment models
    "MAIN_BRANCH",
    "STAGING_BRANCH",
    "DeploymentLocation",
    "DeploymentMeta",
    "DeploymentPhase",
    "HostedDeployment",
    "MergeResult",
    "ProductionPromotionResult",
    "PromotionPhase",
    "RollbackInfo",
    "StagingDeploymentResult",
    "VercelDeploymentState",
    "VerifiedStagingDeployment",
    # Generation models
    "GeneratedFile",
    "GenerationResult",
    "InjectionResult",
]
