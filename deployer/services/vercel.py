"""Vercel REST API client."""

from typing import Any

import httpx
from pydantic import ValidationError

from deployer.config import Settings, get_settings
from deployer.core.exceptions import VercelAPIError
from deployer.models.deployment import HostedDeployment
from deployer.utils.logging import get_logger


class VercelClient:
    """Lists deployments Vercel created from GitHub pushes."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self.logger = get_logger("vercel")

    async def list_deployments(self, limit: int = 20) -> list[HostedDeployment]:
        """Fetch recent deployments, newest first.

        Records that do not validate are logged and skipped.

        Raises:
            ConfigurationError: If VERCEL_TOKEN is not set
            VercelAPIError: On a non-success response
            httpx.HTTPError: On transport failures
        """
        token = self.settings.require_vercel_token()

        params: dict[str, Any] = {"limit": limit}
        if self.settings.vercel_team_id:
            params["teamId"] = self.settings.vercel_team_id

        async with httpx.AsyncClient(
            base_url=self.settings.vercel_api_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.get("/v6/deployments", params=params)

        self.logger.debug("vercel.list_deployments", status_code=response.status_code)

        if response.is_error:
            raise VercelAPIError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise VercelAPIError(response.status_code, f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise VercelAPIError(response.status_code, "Unexpected response shape")

        deployments: list[HostedDeployment] = []
        for item in data.get("deployments") or []:
            try:
                deployments.append(HostedDeployment.model_validate(item))
            except ValidationError as e:
                # e.g. a state outside VercelDeploymentState
                self.logger.warning(
                    "vercel.deployment_skipped",
                    uid=item.get("uid") if isinstance(item, dict) else None,
                    error_count=e.error_count(),
                )
        return deployments
