"""Staging Deploy Orchestrator.

Drives one app from its confirmed AppSpec to a live staging deployment:

1. fetch_appspec   - load and validate the AppSpec
2. compile_prompt  - render the AppSpec as a generation prompt
3. generate_code   - generate the app with v0
4. post_process    - inject required invariant files
5. create_repo     - make sure the app's GitHub repository exists
6. commit_code     - commit every file to the staging branch
7. poll_deployment - wait for Vercel to finish the staging deployment

Phases run strictly in order and each runs at most once per invocation.
"""

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from pydantic import ValidationError

from deployer.config import Settings, get_settings
from deployer.core.events import EventBus, get_event_bus
from deployer.core.exceptions import (
    CodeGenerationError,
    ConfigurationError,
    DeployerError,
    DeploymentFailedError,
    DeploymentPhaseError,
    PollTimeoutError,
)
from deployer.core.interfaces import (
    CodeGenerator,
    InvariantInjector,
    PromptCompiler,
    RepositoryManager,
    SpecificationStore,
)
from deployer.core.poller import DeploymentPoller
from deployer.models.app import AppSpec
from deployer.models.deployment import (
    STAGING_BRANCH,
    DeploymentPhase,
    StagingDeploymentResult,
)
from deployer.models.generation import GeneratedFile, join_sections, merge_files
from deployer.services.git_commit import GitCommitService
from deployer.services.repository import repo_name_for
from deployer.utils.logging import get_logger


@dataclass
class _Run:
    """Mutable state of one orchestrator invocation."""

    app_id: str
    phase: DeploymentPhase = DeploymentPhase.FETCH_APPSPEC
    durations_ms: dict[str, int] = field(default_factory=dict)


async def load_appspec(store: SpecificationStore, app_id: str) -> AppSpec:
    """Fetch and validate the AppSpec for ``app_id``.

    Raises:
        DeploymentPhaseError: tagged ``fetch_appspec`` if the app is missing or
            its spec is not a usable AppSpec
    """
    app = await store.get_app(app_id)
    if app is None:
        raise DeploymentPhaseError(f"App not found: {app_id}", DeploymentPhase.FETCH_APPSPEC)

    if not app.spec or not isinstance(app.spec, dict):
        raise DeploymentPhaseError(
            f"Invalid AppSpec format for app {app_id}", DeploymentPhase.FETCH_APPSPEC
        )

    try:
        return AppSpec.model_validate(app.spec)
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise DeploymentPhaseError(
            f"AppSpec missing required fields for app {app_id}: {missing}",
            DeploymentPhase.FETCH_APPSPEC,
            e,
        ) from e


class StagingDeployOrchestrator:
    """Runs the seven-phase staging deployment for an app."""

    def __init__(
        self,
        store: SpecificationStore,
        compile_prompt: PromptCompiler,
        generator: CodeGenerator,
        injector: InvariantInjector,
        repositories: RepositoryManager,
        committer: GitCommitService,
        poller: DeploymentPoller,
        settings: Settings | None = None,
        events: EventBus | None = None,
    ):
        self.store = store
        self.compile_prompt = compile_prompt
        self.generator = generator
        self.injector = injector
        self.repositories = repositories
        self.committer = committer
        self.poller = poller
        self.settings = settings or get_settings()
        self.events = events or get_event_bus()
        self.logger = get_logger("staging")

    async def deploy(self, app_id: str) -> StagingDeploymentResult:
        """Trigger a complete staging deployment for an app.

        Raises:
            DeploymentPhaseError: Tagged with the phase that failed
            CodeGenerationError: When code generation fails
            GitCommitError: When the commit to the staging branch fails
            ConfigurationError: When a required credential is missing
        """
        run = _Run(app_id=app_id)
        log = self.logger.bind(app_id=app_id)
        log.info("staging.pipeline.started")

        try:
            async with self._phase(run, DeploymentPhase.FETCH_APPSPEC):
                spec = await load_appspec(self.store, app_id)

            async with self._phase(run, DeploymentPhase.COMPILE_PROMPT):
                prompt = self._compile(spec)

            async with self._phase(run, DeploymentPhase.GENERATE_CODE):
                generated = await self._generate(prompt, app_id)

            async with self._phase(run, DeploymentPhase.POST_PROCESS):
                files = await self._post_process(generated, spec)

            async with self._phase(run, DeploymentPhase.CREATE_REPO):
                repo_name, repo_url = await self._ensure_repository(spec)

            async with self._phase(run, DeploymentPhase.COMMIT_CODE):
                commit_sha = await self.committer.commit(repo_name, STAGING_BRANCH, files)

            async with self._phase(run, DeploymentPhase.POLL_DEPLOYMENT):
                location = await self._poll(repo_name, commit_sha)

        except DeployerError as e:
            await self._fail(run, e)
            raise
        except Exception as e:
            wrapped = DeploymentPhaseError(
                f"Unexpected deployment error: {e}", run.phase, e
            )
            await self._fail(run, wrapped)
            raise wrapped from e

        result = StagingDeploymentResult(
            staging_url=location.url,
            deployment_id=location.deployment_id,
            github_commit_sha=commit_sha,
            repo_url=repo_url,
        )
        await self.store.record_staging(app_id, result)
        await self.events.publish_deployment_ready(app_id, result.staging_url, "staging")

        log.info(
            "staging.pipeline.completed",
            staging_url=result.staging_url,
            deployment_id=result.deployment_id,
            repo_url=result.repo_url,
            commit_sha=result.github_commit_sha,
            durations_ms=run.durations_ms,
        )
        return result

    @asynccontextmanager
    async def _phase(self, run: _Run, phase: DeploymentPhase) -> AsyncIterator[None]:
        run.phase = phase
        started = time.perf_counter()
        self.logger.info("staging.phase.started", app_id=run.app_id, phase=phase.value)
        await self.events.publish_phase_started(run.app_id, phase.value)

        yield

        duration_ms = int((time.perf_counter() - started) * 1000)
        run.durations_ms[phase.value] = duration_ms
        self.logger.info(
            "staging.phase.completed",
            app_id=run.app_id,
            phase=phase.value,
            duration_ms=duration_ms,
        )
        await self.events.publish_phase_completed(run.app_id, phase.value, duration_ms)

    async def _fail(self, run: _Run, error: DeployerError) -> None:
        self.logger.error(
            "staging.pipeline.failed",
            app_id=run.app_id,
            phase=error.phase or run.phase.value,
            kind=error.kind.value,
            error=error.message,
        )
        await self.events.publish_error(run.app_id, error.to_dict(), error.phase or run.phase.value)

    def _compile(self, spec: AppSpec) -> str:
        try:
            return self.compile_prompt(spec)
        except Exception as e:
            raise DeploymentPhaseError(
                f"Failed to compile AppSpec: {e}", DeploymentPhase.COMPILE_PROMPT, e
            ) from e

    async def _generate(self, prompt: str, app_id: str) -> list[GeneratedFile]:
        self.logger.info("staging.generation.started", app_id=app_id, prompt_length=len(prompt))
        try:
            result = await self.generator.generate(prompt, app_id)
        except (CodeGenerationError, ConfigurationError):
            raise
        except Exception as e:
            raise CodeGenerationError(f"v0 code generation failed: {e}", app_id, e) from e

        if result.failed:
            raise CodeGenerationError("v0 code generation failed", app_id)
        if not result.files:
            raise CodeGenerationError(
                "v0 generation completed but no files were generated", app_id
            )

        self.logger.info(
            "staging.generation.completed",
            app_id=app_id,
            file_count=len(result.files),
            chat_id=result.chat_id,
        )
        return result.files

    async def _post_process(
        self, generated: list[GeneratedFile], spec: AppSpec
    ) -> list[GeneratedFile]:
        try:
            injection = await self.injector.inject(join_sections(generated), spec)
            injected = injection.extract_files()
        except DeployerError:
            raise
        except Exception as e:
            raise DeploymentPhaseError(
                f"Post-processing failed: {e}", DeploymentPhase.POST_PROCESS, e
            ) from e

        files = merge_files(injected, generated)
        self.logger.info(
            "staging.post_process.completed",
            app_id=spec.id,
            injected_count=len(injected),
            total_files=len(files),
        )
        return files

    async def _ensure_repository(self, spec: AppSpec) -> tuple[str, str]:
        repo_name = repo_name_for(spec.meta.org_id, spec.meta.slug)
        try:
            if await self.repositories.repository_exists(repo_name):
                self.logger.info("staging.repository.exists", repo=repo_name)
                return repo_name, self.repositories.repo_url(repo_name)

            self.logger.info("staging.repository.creating", repo=repo_name)
            info = await self.repositories.ensure_repository(spec.meta.org_id, spec.meta.slug)
            return info.repo_name, info.repo_url
        except ConfigurationError:
            raise
        except Exception as e:
            raise DeploymentPhaseError(
                f"Failed to create/verify GitHub repository: {e}",
                DeploymentPhase.CREATE_REPO,
                e,
            ) from e

    async def _poll(self, repo_name: str, commit_sha: str):
        try:
            return await self.poller.poll(
                repo_name,
                commit_sha,
                STAGING_BRANCH,
                timeout_ms=self.settings.staging_timeout_ms,
            )
        except DeploymentFailedError as e:
            raise DeploymentPhaseError(str(e), DeploymentPhase.POLL_DEPLOYMENT, e) from e
        except PollTimeoutError as e:
            raise DeploymentPhaseError(
                f"Deployment timed out after {e.timeout_seconds:g}s",
                DeploymentPhase.POLL_DEPLOYMENT,
                e,
                timed_out=True,
            ) from e
