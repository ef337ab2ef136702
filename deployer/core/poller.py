"""Deployment polling.

Vercel deploys automatically when a commit lands on a branch, so the
pipeline learns about the deployment by polling the deployment list until
the record for (repository, commit, branch) reaches a terminal state.
"""

import asyncio
import time
from typing import Awaitable, Callable, Iterable, TypeVar

import structlog

from deployer.core.exceptions import ConfigurationError, DeploymentFailedError, PollTimeoutError
from deployer.models.deployment import (
    DeploymentLocation,
    HostedDeployment,
    VercelDeploymentState,
)
from deployer.services.vercel import VercelClient
from deployer.utils.logging import get_logger

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


async def poll_until(
    check: Callable[[int], Awaitable[T | None]],
    interval_seconds: float,
    timeout_ms: int,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Call ``check`` every ``interval_seconds`` until it returns a value.

    ``check`` receives the 1-based attempt number. Returning ``None`` means
    "not yet"; raising ends the loop immediately. The deadline is measured
    from the first call and is never reset.

    Raises:
        PollTimeoutError: If the deadline elapses first
    """
    start = clock()
    attempt = 0
    while (clock() - start) * 1000 < timeout_ms:
        attempt += 1
        result = await check(attempt)
        if result is not None:
            return result
        await sleep(interval_seconds)
    raise PollTimeoutError(timeout_ms)


def newest_first(deployments: Iterable[HostedDeployment]) -> list[HostedDeployment]:
    return sorted(deployments, key=lambda d: d.created, reverse=True)


class DeploymentPoller:
    """Waits for the Vercel deployment of a specific commit on a branch."""

    def __init__(
        self,
        vercel: VercelClient,
        interval_ms: int,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.vercel = vercel
        self.interval_ms = interval_ms
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or get_logger("poller")

    async def poll(
        self,
        repo_name: str,
        commit_sha: str,
        branch: str,
        timeout_ms: int,
    ) -> DeploymentLocation:
        """Poll until the matching deployment is READY.

        Raises:
            DeploymentFailedError: The matching deployment reached ERROR or CANCELED
            PollTimeoutError: No READY deployment before ``timeout_ms``
            ConfigurationError: If VERCEL_TOKEN is not set

        Any other error while listing deployments is logged and retried
        on the next tick.
        """
        log = self.logger.bind(repo=repo_name, commit_sha=commit_sha, branch=branch)
        log.info("poller.started", timeout_ms=timeout_ms, interval_ms=self.interval_ms)
        start = self.clock()

        async def check(attempt: int) -> DeploymentLocation | None:
            try:
                deployments = await self.vercel.list_deployments()
            except ConfigurationError:
                raise
            except Exception as e:
                # Transient; the deadline keeps running
                log.warning(
                    "poller.request_failed",
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None

            deployment = next(
                (d for d in deployments if d.matches(repo_name, commit_sha, branch)),
                None,
            )

            if deployment is None:
                log.info(
                    "poller.deployment_not_found",
                    attempt=attempt,
                    elapsed_s=round(self.clock() - start),
                )
                return None

            if deployment.state == VercelDeploymentState.READY:
                log.info(
                    "poller.deployment_ready",
                    deployment_id=deployment.uid,
                    url=deployment.https_url,
                )
                return DeploymentLocation(
                    url=deployment.https_url, deployment_id=deployment.uid
                )

            if deployment.state.is_terminal_failure:
                log.error(
                    "poller.deployment_failed",
                    deployment_id=deployment.uid,
                    state=deployment.state.value,
                )
                raise DeploymentFailedError(deployment.uid, deployment.state.value)

            log.info(
                "poller.deployment_in_progress",
                attempt=attempt,
                deployment_id=deployment.uid,
                state=deployment.state.value,
            )
            return None

        try:
            return await poll_until(
                check,
                interval_seconds=self.interval_ms / 1000,
                timeout_ms=timeout_ms,
                clock=self.clock,
                sleep=self.sleep,
            )
        except PollTimeoutError:
            log.error("poller.timed_out", timeout_ms=timeout_ms)
            raise

    async def find_latest(
        self,
        repo_name: str,
        branch: str,
        states: Iterable[VercelDeploymentState],
    ) -> HostedDeployment | None:
        """Newest deployment for ``repo_name`` on ``branch`` in one of ``states``.

        Errors from the Vercel API propagate to the caller.
        """
        wanted = set(states)
        deployments = await self.vercel.list_deployments()
        for deployment in newest_first(deployments):
            if (
                deployment.matches_repo(repo_name)
                and deployment.branch == branch
                and deployment.state in wanted
            ):
                return deployment
        return None
