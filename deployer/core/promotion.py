"""Production Promotion Orchestrator.

Promotes a verified staging deployment to production by merging the
``staging`` branch into ``main`` and waiting for Vercel's production
deployment of the merge commit.

The "production deployment already in progress" check is advisory only:
it reads the deployment list and then acts, so two promotions started at
the same moment can both pass it. There is no distributed lock.
"""

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator

from deployer.config import Settings, get_settings
from deployer.core.events import EventBus, get_event_bus
from deployer.core.exceptions import (
    ConfigurationError,
    DeployerError,
    DeploymentFailedError,
    GitHubAPIError,
    PollTimeoutError,
    PromotionError,
    VercelAPIError,
)
from deployer.core.interfaces import SpecificationStore
from deployer.core.poller import DeploymentPoller
from deployer.core.staging import load_appspec
from deployer.models.deployment import (
    MAIN_BRANCH,
    STAGING_BRANCH,
    DeploymentLocation,
    MergeResult,
    ProductionPromotionResult,
    PromotionPhase,
    RollbackInfo,
    VercelDeploymentState,
    VerifiedStagingDeployment,
)
from deployer.services.github import GitHubClient
from deployer.services.repository import repo_name_for
from deployer.utils.logging import get_logger

IN_PROGRESS_STATES = tuple(s for s in VercelDeploymentState if s.is_in_progress)

PR_BODY = (
    "Automated promotion from staging to production\n\n"
    "This PR was automatically created by the production promotion service."
)


@dataclass
class _Run:
    app_id: str
    phase: PromotionPhase = PromotionPhase.VERIFY_STAGING
    rollback_info: RollbackInfo | None = None
    durations_ms: dict[str, int] = field(default_factory=dict)


class ProductionPromotionOrchestrator:
    """Runs verify_staging -> merge_branches -> poll_production for an app."""

    def __init__(
        self,
        store: SpecificationStore,
        github: GitHubClient,
        poller: DeploymentPoller,
        settings: Settings | None = None,
        events: EventBus | None = None,
    ):
        self.store = store
        self.github = github
        self.poller = poller
        self.settings = settings or get_settings()
        self.events = events or get_event_bus()
        self.logger = get_logger("promotion")

    @property
    def owner(self) -> str:
        return self.settings.github_org

    async def promote(self, app_id: str) -> ProductionPromotionResult:
        """Promote the app's current staging deployment to production.

        Raises:
            PromotionError: Tagged with the promotion phase that failed
            DeploymentPhaseError: If the AppSpec cannot be loaded
            ConfigurationError: When a required credential is missing
        """
        run = _Run(app_id=app_id)
        log = self.logger.bind(app_id=app_id)
        log.info("promotion.pipeline.started")

        try:
            spec = await load_appspec(self.store, app_id)
            repo_name = repo_name_for(spec.meta.org_id, spec.meta.slug)
            repo_url = f"https://github.com/{self.owner}/{repo_name}"
            log = log.bind(repo=repo_name)

            async with self._phase(run, PromotionPhase.VERIFY_STAGING):
                staging = await self.verify_staging_deployment(repo_name, app_id)
                run.rollback_info = staging.rollback_info()

                if await self.has_production_deployment_in_progress(repo_name):
                    raise PromotionError(
                        "Production deployment already in progress. "
                        "Please wait for it to complete before promoting again.",
                        app_id,
                        PromotionPhase.VERIFY_STAGING,
                        rollback_info=run.rollback_info,
                        in_progress=True,
                    )

            async with self._phase(run, PromotionPhase.MERGE_BRANCHES):
                merge = await self.merge_staging_to_main(
                    repo_name, app_id, rollback_info=run.rollback_info
                )

            async with self._phase(run, PromotionPhase.POLL_PRODUCTION):
                location = await self._poll_production(
                    repo_name, merge.commit_sha, app_id, run.rollback_info
                )

        except DeployerError as e:
            await self._fail(run, e)
            raise
        except Exception as e:
            wrapped = PromotionError(
                f"Unexpected promotion error: {e}",
                app_id,
                run.phase,
                rollback_info=run.rollback_info,
                cause=e,
            )
            await self._fail(run, wrapped)
            raise wrapped from e

        result = ProductionPromotionResult(
            production_url=location.url,
            deployment_id=location.deployment_id,
            github_commit_sha=merge.commit_sha,
            merged_at=merge.merged_at,
            repo_url=repo_url,
        )
        await self.store.record_production(app_id, result)
        await self.events.publish_deployment_ready(app_id, result.production_url, "production")

        log.info(
            "promotion.pipeline.completed",
            production_url=result.production_url,
            deployment_id=result.deployment_id,
            commit_sha=result.github_commit_sha,
            already_up_to_date=merge.already_up_to_date,
            durations_ms=run.durations_ms,
        )
        return result

    @asynccontextmanager
    async def _phase(self, run: _Run, phase: PromotionPhase) -> AsyncIterator[None]:
        run.phase = phase
        started = time.perf_counter()
        self.logger.info("promotion.phase.started", app_id=run.app_id, phase=phase.value)
        await self.events.publish_phase_started(run.app_id, phase.value)

        yield

        duration_ms = int((time.perf_counter() - started) * 1000)
        run.durations_ms[phase.value] = duration_ms
        self.logger.info(
            "promotion.phase.completed",
            app_id=run.app_id,
            phase=phase.value,
            duration_ms=duration_ms,
        )
        await self.events.publish_phase_completed(run.app_id, phase.value, duration_ms)

    async def _fail(self, run: _Run, error: DeployerError) -> None:
        self.logger.error(
            "promotion.pipeline.failed",
            app_id=run.app_id,
            phase=error.phase or run.phase.value,
            kind=error.kind.value,
            error=error.message,
            rollback_info=run.rollback_info.model_dump() if run.rollback_info else None,
        )
        await self.events.publish_error(run.app_id, error.to_dict(), error.phase or run.phase.value)

    async def verify_staging_deployment(
        self, repo_name: str, app_id: str
    ) -> VerifiedStagingDeployment:
        """Find the newest READY staging deployment for the repository.

        Raises:
            PromotionError: tagged ``verify_staging`` if none exists, it has no
                commit SHA, or Vercel cannot be queried
        """
        try:
            deployment = await self.poller.find_latest(
                repo_name, STAGING_BRANCH, [VercelDeploymentState.READY]
            )
        except ConfigurationError:
            raise
        except VercelAPIError as e:
            raise PromotionError(
                f"Failed to query Vercel API: {e.status_code} - {e.message}",
                app_id,
                PromotionPhase.VERIFY_STAGING,
                cause=e,
            ) from e
        except Exception as e:
            raise PromotionError(
                f"Failed to verify staging deployment: {e}",
                app_id,
                PromotionPhase.VERIFY_STAGING,
                cause=e,
            ) from e

        if deployment is None:
            raise PromotionError(
                "No successful staging deployment found. Please deploy to staging first.",
                app_id,
                PromotionPhase.VERIFY_STAGING,
            )

        if not deployment.commit_sha:
            raise PromotionError(
                "Staging deployment missing GitHub commit SHA",
                app_id,
                PromotionPhase.VERIFY_STAGING,
            )

        self.logger.info(
            "promotion.staging_verified",
            repo=repo_name,
            deployment_id=deployment.uid,
            staging_url=deployment.https_url,
            commit_sha=deployment.commit_sha,
        )
        return VerifiedStagingDeployment(
            deployment_id=deployment.uid,
            url=deployment.https_url,
            commit_sha=deployment.commit_sha,
        )

    async def has_production_deployment_in_progress(self, repo_name: str) -> bool:
        """Best-effort check for a QUEUED/INITIALIZING/BUILDING main deployment.

        Returns False when Vercel cannot be queried.
        """
        try:
            deployment = await self.poller.find_latest(repo_name, MAIN_BRANCH, IN_PROGRESS_STATES)
        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.warning(
                "promotion.in_progress_check_failed", repo=repo_name, error=str(e)
            )
            return False

        if deployment is not None:
            self.logger.info(
                "promotion.production_in_progress",
                repo=repo_name,
                deployment_id=deployment.uid,
                state=deployment.state.value,
            )
            return True
        return False

    async def merge_staging_to_main(
        self,
        repo_name: str,
        app_id: str,
        rollback_info: RollbackInfo | None = None,
    ) -> MergeResult:
        """Merge ``staging`` into ``main`` through a pull request.

        Idempotent: when staging has nothing main lacks, no pull request is
        opened and main's current tip is returned.

        Raises:
            PromotionError: tagged ``merge_branches``; ``conflict`` is set for
                merge conflicts
        """

        def error(message: str, cause: BaseException | None = None, conflict: bool = False):
            return PromotionError(
                message,
                app_id,
                PromotionPhase.MERGE_BRANCHES,
                rollback_info=rollback_info,
                cause=cause,
                conflict=conflict,
            )

        try:
            try:
                comparison = await self.github.compare_commits(
                    self.owner, repo_name, base=MAIN_BRANCH, head=STAGING_BRANCH
                )
            except GitHubAPIError as e:
                if e.is_no_commits_between:
                    return await self._main_tip(repo_name)
                raise error(f"Failed to compare staging with main: {e.message}", e) from e

            if comparison.get("status") == "identical" or comparison.get("ahead_by", 0) == 0:
                self.logger.info("promotion.merge.no_op", repo=repo_name)
                return await self._main_tip(repo_name)

            self.logger.info(
                "promotion.merge.commits_ahead",
                repo=repo_name,
                ahead_by=comparison.get("ahead_by"),
            )

            title = f"Promote to production - {datetime.now(timezone.utc).isoformat()}"
            try:
                pr = await self.github.create_pull_request(
                    self.owner,
                    repo_name,
                    title=title,
                    head=STAGING_BRANCH,
                    base=MAIN_BRANCH,
                    body=PR_BODY,
                )
            except GitHubAPIError as e:
                if e.is_no_commits_between:
                    self.logger.info("promotion.merge.no_op", repo=repo_name, reason="no_commits_between")
                    return await self._main_tip(repo_name)
                raise error(f"Failed to create pull request: {e.message}", e) from e

            pull_number = pr["number"]
            self.logger.info("promotion.pull_request.created", repo=repo_name, pull_number=pull_number)

            try:
                merged = await self.github.merge_pull_request(
                    self.owner,
                    repo_name,
                    pull_number,
                    merge_method="merge",
                    commit_title=title,
                    commit_message=PR_BODY,
                )
            except GitHubAPIError as e:
                if e.is_merge_conflict:
                    raise error(
                        "Merge conflict detected between staging and main branches. "
                        "Please resolve conflicts manually.",
                        e,
                        conflict=True,
                    ) from e
                raise error(f"Failed to merge pull request: {e.message}", e) from e

            if merged.get("merged") is False or not merged.get("sha"):
                raise error(
                    f"Failed to merge pull request: {merged.get('message') or 'merge was not performed'}"
                )

        except (PromotionError, ConfigurationError):
            raise
        except Exception as e:
            raise error(f"Failed to merge staging to main: {e}", e) from e

        self.logger.info(
            "promotion.pull_request.merged",
            repo=repo_name,
            pull_number=pull_number,
            commit_sha=merged["sha"],
        )
        return MergeResult(
            commit_sha=merged["sha"],
            merged_at=datetime.now(timezone.utc),
            pull_number=pull_number,
        )

    async def _main_tip(self, repo_name: str) -> MergeResult:
        ref = await self.github.get_ref(self.owner, repo_name, f"heads/{MAIN_BRANCH}")
        return MergeResult(
            commit_sha=ref["object"]["sha"],
            merged_at=datetime.now(timezone.utc),
            already_up_to_date=True,
        )

    async def _poll_production(
        self,
        repo_name: str,
        commit_sha: str,
        app_id: str,
        rollback_info: RollbackInfo | None,
    ) -> DeploymentLocation:
        try:
            return await self.poller.poll(
                repo_name,
                commit_sha,
                MAIN_BRANCH,
                timeout_ms=self.settings.production_timeout_ms,
            )
        except DeploymentFailedError as e:
            raise PromotionError(
                f"Production deployment failed with status: {e.state}",
                app_id,
                PromotionPhase.POLL_PRODUCTION,
                rollback_info=rollback_info,
                cause=e,
            ) from e
        except PollTimeoutError as e:
            raise PromotionError(
                f"Production deployment timed out after {e.timeout_seconds:g}s",
                app_id,
                PromotionPhase.POLL_PRODUCTION,
                rollback_info=rollback_info,
                cause=e,
                timed_out=True,
            ) from e
