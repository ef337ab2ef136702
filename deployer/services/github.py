"""GitHub REST API client.

Covers the Git data API (refs, commits, blobs, trees), repository
management and the compare/pull-request calls used for promotion.
"""

from typing import Any

import httpx

from deployer.config import Settings, get_settings
from deployer.core.exceptions import GitHubAPIError
from deployer.utils.logging import get_logger

GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    """Async client for the subset of the GitHub API the deployer uses."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self.logger = get_logger("github")

    def _headers(self) -> dict[str, str]:
        token = self.settings.require_github_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        headers = self._headers()
        async with httpx.AsyncClient(
            base_url=self.settings.github_api_url,
            headers=headers,
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, json=json)

        self.logger.debug(
            "github.request", method=method, path=path, status_code=response.status_code
        )

        if response.is_error:
            raise GitHubAPIError(response.status_code, _error_message(response))

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # Repositories

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}")

    async def create_repo_in_org(
        self, org: str, name: str, **options: Any
    ) -> dict[str, Any]:
        return await self._request("POST", f"/orgs/{org}/repos", json={"name": name, **options})

    async def create_repo_for_authenticated_user(
        self, name: str, **options: Any
    ) -> dict[str, Any]:
        return await self._request("POST", "/user/repos", json={"name": name, **options})

    async def get_authenticated_user(self) -> dict[str, Any]:
        return await self._request("GET", "/user")

    # Git data

    async def get_ref(self, owner: str, repo: str, ref: str) -> dict[str, Any]:
        """Get a reference, e.g. ``heads/staging``."""
        return await self._request("GET", f"/repos/{owner}/{repo}/git/ref/{ref}")

    async def create_ref(
        self, owner: str, repo: str, ref: str, sha: str
    ) -> dict[str, Any]:
        """Create a fully-qualified reference, e.g. ``refs/heads/staging``."""
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": ref, "sha": sha},
        )

    async def update_ref(
        self, owner: str, repo: str, ref: str, sha: str, force: bool = False
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/{ref}",
            json={"sha": sha, "force": force},
        )

    async def get_commit(self, owner: str, repo: str, commit_sha: str) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}")

    async def create_blob(
        self, owner: str, repo: str, content: str, encoding: str = "base64"
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content, "encoding": encoding},
        )

    async def create_tree(
        self,
        owner: str,
        repo: str,
        tree: list[dict[str, Any]],
        base_tree: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"tree": tree}
        if base_tree:
            payload["base_tree"] = base_tree
        return await self._request("POST", f"/repos/{owner}/{repo}/git/trees", json=payload)

    async def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree: str,
        parents: list[str],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )

    # Promotion

    async def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}/compare/{base}...{head}")

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str = "",
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )

    async def merge_pull_request(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        merge_method: str = "merge",
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"merge_method": merge_method}
        if commit_title:
            payload["commit_title"] = commit_title
        if commit_message:
            payload["commit_message"] = commit_message
        return await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/merge",
            json=payload,
        )


def _error_message(response: httpx.Response) -> str:
    """Pull the most useful message out of a GitHub error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if not isinstance(body, dict):
        return str(body)

    message = body.get("message") or response.reason_phrase
    # Validation failures put the interesting part in errors[].message
    errors = body.get("errors") or []
    extra = [e.get("message") for e in errors if isinstance(e, dict) and e.get("message")]
    if extra:
        message = f"{message}: {'; '.join(extra)}"
    return message
