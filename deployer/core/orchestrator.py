"""Wiring for the deployment orchestrators.

Builds the staging and promotion orchestrators from one ``Settings``
instance, sharing the GitHub and Vercel clients and the poller between
them.
"""

from dataclasses import dataclass

from deployer.config import Settings, get_settings
from deployer.core.events import EventBus, get_event_bus
from deployer.core.interfaces import SpecificationStore
from deployer.core.invariants import DefaultInvariantInjector
from deployer.core.poller import DeploymentPoller
from deployer.core.promotion import ProductionPromotionOrchestrator
from deployer.core.prompt import compile_prompt
from deployer.core.staging import StagingDeployOrchestrator
from deployer.core.store import get_app_store
from deployer.services.git_commit import GitCommitService
from deployer.services.github import GitHubClient
from deployer.services.repository import GitHubRepositoryManager
from deployer.services.v0 import V0CodeGenerator
from deployer.services.vercel import VercelClient


@dataclass
class Orchestrators:
    staging: StagingDeployOrchestrator
    promotion: ProductionPromotionOrchestrator


def build_orchestrators(
    settings: Settings | None = None,
    store: SpecificationStore | None = None,
    events: EventBus | None = None,
) -> Orchestrators:
    """Build both orchestrators with the default collaborators."""
    settings = settings or get_settings()
    store = store or get_app_store()
    events = events or get_event_bus()

    github = GitHubClient(settings)
    poller = DeploymentPoller(VercelClient(settings), interval_ms=settings.deployment_poll_interval_ms)

    staging = StagingDeployOrchestrator(
        store=store,
        compile_prompt=compile_prompt,
        generator=V0CodeGenerator(settings),
        injector=DefaultInvariantInjector(),
        repositories=GitHubRepositoryManager(github, settings),
        committer=GitCommitService(github, settings),
        poller=poller,
        settings=settings,
        events=events,
    )
    promotion = ProductionPromotionOrchestrator(
        store=store,
        github=github,
        poller=poller,
        settings=settings,
        events=events,
    )
    return Orchestrators(staging=staging, promotion=promotion)


# Singleton instance
_orchestrators: Orchestrators | None = None


def get_orchestrators() -> Orchestrators:
    """Get the orchestrators singleton."""
    global _orchestrators
    if _orchestrators is None:
        _orchestrators = build_orchestrators()
    return _orchestrators
